# /myhome/auth/__init__.py
from myhome.auth.roles import permission_registry
from myhome.auth.sessions import session_manager


def init_auth(app, session_store=None):
    """Loads the role permission map and attaches the session store to ``app``."""
    permission_registry.init_app(app)
    session_manager.init_app(app, store=session_store)
