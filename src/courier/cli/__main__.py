from courier.cli.app import app

app()
