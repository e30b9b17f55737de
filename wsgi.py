"""WSGI entry point for gunicorn."""
from gestock.app import create_app
import os

config_path = os.getenv('GESTOCK_CONFIG', 'config.yaml')
application = create_app(config_path)

if __name__ == '__main__':
    config = application.config['GESTOCK_CONFIG']
    application.run(host=config.host, port=config.port)
