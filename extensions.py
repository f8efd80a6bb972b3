from flask_sqlalchemy import SQLAlchemy
from flask_bcrypt import Bcrypt
from flask_jwt_extended import JWTManager
from flask_mail import Mail
from flask_migrate import Migrate
from sqlalchemy import MetaData

# Naming convention for constraints
naming_convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

db = SQLAlchemy(metadata=MetaData(naming_convention=naming_convention))
bcrypt = Bcrypt()
jwt = JWTManager()
mail = Mail()
migrate = Migrate()

@jwt.additional_claims_loader
def add_claims_to_jwt(identity):
    from courierhub.models.user import User

    user = db.session.get(User, int(identity))
    if not user:
        return {}

    return {
        "role": user.role
    }
