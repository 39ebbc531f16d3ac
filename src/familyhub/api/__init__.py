# Vault API - FastAPI application and routers
#
# Import the application factory from .main directly; this package stays
# import-light so the auth dependency can load the session token module.
