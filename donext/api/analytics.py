from flask import Blueprint, request

from donext.errors import ValidationError
from donext.guards import api_route, int_arg, json_body, respond
from donext.models import db
from donext.schemas import PredictTasksSchema, parse
from donext.services import analytics, predictive

bp = Blueprint('analytics_api', __name__, url_prefix='/api/analytics')


@bp.route('', methods=['GET'])
@api_route()
def overview(user):
    return respond(**analytics.overview(db.session, user.id))


@bp.route('/chart/<period>', methods=['GET'])
@api_route()
def chart(user, period):
    return respond(**analytics.chart_data(
        db.session,
        user.id,
        period,
        chart_type=request.args.get('chartType', 'bar'),
        month=int_arg('month'),
        year=int_arg('year'),
    ))


@bp.route('/predictive', methods=['GET'])
@api_route()
def predictive_get(user):
    kind = request.args.get('type', 'forecast')

    if kind == 'forecast':
        days = int_arg('days', default=30)
        if days < 1:
            raise ValidationError("days must be positive")
        return respond(forecast=predictive.performance_forecast(db.session, user.id, days))
    if kind == 'trends':
        period = request.args.get('period', 'month')
        if period not in predictive.PERIOD_DAYS:
            raise ValidationError("period must be week, month or quarter")
        return respond(trends=predictive.performance_trends(db.session, user.id, period))
    if kind == 'habitPredictions':
        return respond(**predictive.habit_predictions(db.session, user.id))

    raise ValidationError("Invalid type parameter")


@bp.route('/predictive', methods=['POST'])
@api_route()
def predictive_post(user):
    body = json_body()
    if body.get('action') != 'predictTaskCompletion':
        raise ValidationError("Invalid action")
    data = parse(PredictTasksSchema, body)
    return respond(predictions=predictive.predict_task_completion(db.session, user.id, data.task_ids))
