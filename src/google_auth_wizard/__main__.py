from google_auth_wizard.cli import app

app()
