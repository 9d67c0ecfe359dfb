from flask import Blueprint

from donext import auth
from donext.guards import api_route, json_body, respond
from donext.models import db
from donext.schemas import (
    ForgotPasswordSchema,
    LoginSchema,
    ResetPasswordSchema,
    SignupSchema,
    UserSettingsSchema,
    parse,
)

bp = Blueprint('auth_api', __name__, url_prefix='/api')


@bp.route('/auth/signup', methods=['POST'])
def signup():
    data = parse(SignupSchema, json_body())
    user = auth.signup(db.session, data.name, data.email, data.password)
    auth.login_user(user)
    return respond(201, user=user.to_dict())


@bp.route('/auth/login', methods=['POST'])
def login():
    data = parse(LoginSchema, json_body())
    user = auth.authenticate(db.session, data.email, data.password)
    auth.login_user(user)
    return respond(user=user.to_dict())


@bp.route('/auth/logout', methods=['POST'])
def logout():
    auth.logout_user()
    return respond(message="Logged out")


@bp.route('/auth/forgot-password', methods=['POST'])
def forgot_password():
    data = parse(ForgotPasswordSchema, json_body())
    return respond(message=auth.request_password_reset(db.session, data.email))


@bp.route('/auth/reset-password', methods=['POST'])
def reset_password():
    data = parse(ResetPasswordSchema, json_body())
    auth.reset_password(db.session, data.token, data.password)
    return respond(message="Password has been reset")


@bp.route('/user/settings', methods=['GET'])
@api_route()
def get_settings(user):
    return respond(user=user.to_dict())


@bp.route('/user/settings', methods=['PUT'])
@api_route(UserSettingsSchema)
def update_settings(user, payload):
    user = auth.update_settings(db.session, user, payload.model_dump(exclude_unset=True))
    return respond(user=user.to_dict())
