from app.ai_core.identity.resolver import IdentityResolver, UserDirectory

__all__ = ["IdentityResolver", "UserDirectory"]
