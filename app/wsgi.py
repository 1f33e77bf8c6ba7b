from app.opsportal import create_app

app = create_app()
