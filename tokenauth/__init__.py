"""Access/refresh token issuing, renewal, rotation and revocation."""
