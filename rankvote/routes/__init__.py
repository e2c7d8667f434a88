from rankvote.routes.admin import register_admin_routes
from rankvote.routes.integrations import register_integration_routes
from rankvote.routes.public import register_public_routes


def register_routes(app):
    register_public_routes(app)
    register_admin_routes(app)
    register_integration_routes(app)
