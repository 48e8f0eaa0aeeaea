from luukahead.app.models.session import AuthSession
from luukahead.app.models.user import User

__all__ = ["AuthSession", "User"]
