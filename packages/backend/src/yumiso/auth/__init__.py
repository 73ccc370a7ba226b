"""Authentication.

Learn: sessions are issued by the external auth provider. The backend
never sees passwords — it verifies the provider's signed bearer token
and resolves it to a CurrentIdentity (user id + display name).
"""
