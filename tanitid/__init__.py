"""SD-JWT-VC issuance, selective disclosure and OID4VP presentation for the TanitID wallet."""
