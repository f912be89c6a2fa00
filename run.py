# Import the factory function from app.py
from app import create_app
from config import DevelopmentConfig

# Explicitly use DevelopmentConfig for local development
app = create_app(config_class=DevelopmentConfig)

if __name__ == '__main__':
    # The debug setting is controlled from config.py for security
    app.run(debug=app.config.get('DEBUG', False))
