# module jerseyshop.app
from jerseyshop.app_setup.factory import create_app

# App globale
app = create_app()
