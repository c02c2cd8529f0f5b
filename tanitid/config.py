import os

ISSUER_ID = os.environ.get("TANITID_ISSUER_ID", "https://demo.zktanit.id/issuer")
CREDENTIAL_VALIDITY_DAYS = int(os.environ.get("TANITID_CREDENTIAL_VALIDITY_DAYS", "365"))
TRUSTED_ISSUERS = [
    iss.strip()
    for iss in os.environ.get("TANITID_TRUSTED_ISSUERS", ISSUER_ID).split(",")
    if iss.strip()
]
LOG_LEVEL = os.environ.get("TANITID_LOG_LEVEL", "INFO")
HTTP_TIMEOUT = float(os.environ.get("TANITID_HTTP_TIMEOUT", "10"))
