import logging
import os

from flask import Flask
from flask_cors import CORS
from flask_migrate import Migrate

from commands import register_commands
from errors import register_error_handlers
from models import db
from security import bcrypt, jwt

# Room for the non-file multipart fields on top of the file itself.
FORM_FIELD_ALLOWANCE = 64 * 1024

migrate = Migrate()
cors = CORS()


def create_app(config_object='config.Config', **overrides):
    app = Flask(__name__)
    app.config.from_object(config_object)
    app.config.update(overrides)
    if app.config.get('MAX_CONTENT_LENGTH') is None:
        app.config['MAX_CONTENT_LENGTH'] = app.config['MAX_FILE_SIZE'] + FORM_FIELD_ALLOWANCE
    app.config['UPLOAD_FOLDER'] = os.path.abspath(app.config['UPLOAD_FOLDER'])

    logging.basicConfig(format='%(asctime)s %(levelname)s %(name)s: %(message)s')
    logging.getLogger().setLevel(app.config['LOG_LEVEL'])

    db.init_app(app)
    migrate.init_app(app, db)
    bcrypt.init_app(app)
    jwt.init_app(app)
    cors.init_app(
        app,
        origins=app.config['CORS_ORIGINS'],
        supports_credentials=True,
        methods=['GET', 'POST', 'PUT', 'DELETE', 'OPTIONS'],
        allow_headers=['Content-Type', 'Authorization', 'X-Requested-With', 'X-Admin-Key'],
    )

    from main.auth import auth
    from main.files import files
    from main.status import status

    app.register_blueprint(status)
    app.register_blueprint(auth)
    app.register_blueprint(files)

    register_error_handlers(app)
    register_commands(app)
    return app


if __name__ == '__main__':
    app = create_app()
    with app.app_context():
        db.create_all()

    if not os.path.exists(app.config['UPLOAD_FOLDER']):
        os.makedirs(app.config['UPLOAD_FOLDER'])
    app.run(port=app.config['PORT'], debug=app.config['DEBUG'])
