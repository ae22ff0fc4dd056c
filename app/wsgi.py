from app.brokerdesk import create_app

app = create_app()
