import os

# --- Key policy ---
KEY_SIZE = 2048
PUBLIC_EXPONENT = 65537

# --- Validity policy ---
# Certificates start HOURS_BEFORE in the past to absorb clock skew and stay
# usable for HOURS_AFTER once the skew margin has passed.
HOURS_BEFORE = 1
HOURS_AFTER = 48

# --- Nominal issuing identity (no real CA key behind it) ---
ISSUER_COUNTRY = "US"
ISSUER_ORGANIZATION = "AgentCert"
ISSUER_COMMON_NAME = "agentcert-client"

# --- Runtime settings ---
LOG_LEVEL = os.environ.get("AGENTCERT_LOG_LEVEL", "INFO")
LOG_FORMAT = os.environ.get("AGENTCERT_LOG_FORMAT", "console")
LOG_CERTIFICATE_PEM = os.environ.get("AGENTCERT_LOG_PEM", "0").lower() in ("1", "true", "yes")

DEFAULT_OUT_DIR = "keys"
