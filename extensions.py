from flask_sqlalchemy import SQLAlchemy


# Shared SQLAlchemy handle. Models and blueprints import it from here so that
# app.py can stay the only place that binds it to a Flask app.
db = SQLAlchemy()
