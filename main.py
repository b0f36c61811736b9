from prime_notifications.main import create_app

app = create_app()
