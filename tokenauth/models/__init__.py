from tokenauth.models.subject import Subject
from tokenauth.models.refresh_token import RefreshToken
from tokenauth.models.rate_window import RateWindow

__all__ = ["Subject", "RefreshToken", "RateWindow"]
