from sitestock import create_app

app = create_app()
