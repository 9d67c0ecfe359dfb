from datetime import date, datetime, timezone

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()


def utcnow():
    return datetime.now(timezone.utc).replace(tzinfo=None)


def today():
    return utcnow().date()


def iso(value):
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


class User(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), unique=True, nullable=False)
    name = db.Column(db.String(100), nullable=False)
    password_hash = db.Column(db.String(255), nullable=False)
    profile_picture = db.Column(db.String(500), nullable=True)
    theme = db.Column(db.String(20), default='light')
    notif_email = db.Column(db.Boolean, default=True)
    notif_push = db.Column(db.Boolean, default=False)
    default_view = db.Column(db.String(30), default='dashboard')
    dashboard_config = db.Column(db.JSON, nullable=True)
    reset_token_hash = db.Column(db.String(255), nullable=True)
    reset_token_expiry = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    tasks = db.relationship('Task', backref='owner', lazy=True)
    habits = db.relationship('Habit', backref='owner', lazy=True)
    routine_steps = db.relationship('RoutineStep', backref='owner', lazy=True)
    goals = db.relationship('Goal', backref='owner', lazy=True)

    def to_dict(self):
        return {
            'id': self.id,
            'email': self.email,
            'name': self.name,
            'profilePicture': self.profile_picture,
            'theme': self.theme,
            'notifEmail': self.notif_email,
            'notifPush': self.notif_push,
            'defaultView': self.default_view,
            'dashboardConfig': self.dashboard_config,
            'createdAt': iso(self.created_at),
        }

    def to_public_dict(self):
        return {'id': self.id, 'name': self.name, 'email': self.email}


class Task(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=True)
    completed = db.Column(db.Boolean, default=False, nullable=False)
    completed_at = db.Column(db.DateTime, nullable=True)
    priority = db.Column(db.String(10), default='Medium', nullable=False)  # High / Medium / Low
    category = db.Column(db.String(50), nullable=True)
    type = db.Column(db.String(50), nullable=True)
    date = db.Column(db.DateTime, nullable=True)
    time = db.Column(db.String(20), nullable=True)
    location = db.Column(db.String(200), nullable=True)
    deadline = db.Column(db.DateTime, nullable=True)
    estimated_time = db.Column(db.Integer, nullable=True)  # minutes
    actual_time = db.Column(db.Integer, nullable=True)     # minutes
    smart_priority = db.Column(db.Integer, nullable=True)  # cached score
    parent_task_id = db.Column(db.Integer, db.ForeignKey('task.id'), nullable=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    subtasks = db.relationship('Task', backref=db.backref('parent_task', remote_side=[id]), lazy=True)

    def to_dict(self):
        return {
            'id': self.id,
            'title': self.title,
            'description': self.description,
            'completed': self.completed,
            'completedAt': iso(self.completed_at),
            'priority': self.priority,
            'category': self.category,
            'type': self.type,
            'date': iso(self.date),
            'time': self.time,
            'location': self.location,
            'deadline': iso(self.deadline),
            'estimatedTime': self.estimated_time,
            'actualTime': self.actual_time,
            'smartPriority': self.smart_priority,
            'parentTaskId': self.parent_task_id,
            'userId': self.user_id,
            'createdAt': iso(self.created_at),
            'updatedAt': iso(self.updated_at),
        }


class TaskDependency(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    dependency_id = db.Column(db.Integer, db.ForeignKey('task.id'), nullable=False)
    dependent_id = db.Column(db.Integer, db.ForeignKey('task.id'), nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow)

    dependency = db.relationship('Task', foreign_keys=[dependency_id])
    dependent = db.relationship('Task', foreign_keys=[dependent_id])

    __table_args__ = (
        db.UniqueConstraint('dependency_id', 'dependent_id', name='unique_task_dependency'),
        db.CheckConstraint('dependency_id != dependent_id', name='no_self_dependency'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'dependencyId': self.dependency_id,
            'dependentId': self.dependent_id,
            'createdAt': iso(self.created_at),
        }


class PriorityChange(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)
    task_id = db.Column(db.Integer, db.ForeignKey('task.id'), nullable=False)
    previous_priority = db.Column(db.String(10), nullable=False)
    new_priority = db.Column(db.String(10), nullable=False)
    smart_score = db.Column(db.Integer, nullable=True)
    action = db.Column(db.String(20), nullable=True)
    reason = db.Column(db.String(200), nullable=True)
    batch_update = db.Column(db.Boolean, default=False)
    changed_at = db.Column(db.DateTime, default=utcnow)


class Habit(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    icon = db.Column(db.String(10), default='🧘')
    category = db.Column(db.String(50), nullable=False)
    frequency = db.Column(db.String(50), default='Daily')
    goal_value = db.Column(db.Integer, default=1)
    goal_unit = db.Column(db.String(20), default='times')
    reminder_time = db.Column(db.String(20), default='08:00')
    motivation = db.Column(db.String(500), nullable=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)
    completions = db.relationship('HabitCompletion', backref='habit', lazy=True,
                                  order_by='HabitCompletion.date.desc()')

    def to_dict(self, with_completions=False):
        data = {
            'id': self.id,
            'name': self.name,
            'icon': self.icon,
            'category': self.category,
            'frequency': self.frequency,
            'goalValue': self.goal_value,
            'goalUnit': self.goal_unit,
            'reminderTime': self.reminder_time,
            'motivation': self.motivation,
            'userId': self.user_id,
            'createdAt': iso(self.created_at),
        }
        if with_completions:
            data['completions'] = [c.to_dict() for c in self.completions]
        return data


class HabitCompletion(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    habit_id = db.Column(db.Integer, db.ForeignKey('habit.id'), nullable=False)
    date = db.Column(db.Date, nullable=False, default=today)
    created_at = db.Column(db.DateTime, default=utcnow)

    __table_args__ = (
        db.UniqueConstraint('habit_id', 'date', name='unique_habit_date'),
    )

    def to_dict(self):
        return {'id': self.id, 'habitId': self.habit_id, 'date': iso(self.date)}


class RoutineStep(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    time = db.Column(db.String(20), nullable=False)  # "06:30"
    task = db.Column(db.String(200), nullable=False)
    icon = db.Column(db.String(10), nullable=False)
    category = db.Column(db.String(50), nullable=False)
    active = db.Column(db.Boolean, default=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow)
    completions = db.relationship('RoutineCompletion', backref='step', lazy=True)

    def to_dict(self):
        return {
            'id': self.id,
            'time': self.time,
            'task': self.task,
            'icon': self.icon,
            'category': self.category,
            'active': self.active,
            'userId': self.user_id,
        }


class RoutineCompletion(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    routine_step_id = db.Column(db.Integer, db.ForeignKey('routine_step.id'), nullable=False)
    date = db.Column(db.Date, nullable=False, default=today)

    __table_args__ = (
        db.UniqueConstraint('routine_step_id', 'date', name='unique_routine_step_date'),
    )


class Goal(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=True)
    specific = db.Column(db.String(500), nullable=True)
    measurable = db.Column(db.String(300), nullable=True)
    achievable = db.Column(db.Boolean, default=True)
    relevant = db.Column(db.String(300), nullable=True)
    deadline = db.Column(db.DateTime, nullable=False)
    target_value = db.Column(db.Float, nullable=True)
    current_value = db.Column(db.Float, default=0)
    unit = db.Column(db.String(50), nullable=True)
    category = db.Column(db.String(100), nullable=True)
    priority = db.Column(db.String(10), default='Medium')
    progress = db.Column(db.Float, default=0)
    status = db.Column(db.String(20), default='Active', nullable=False)  # Active / Completed / Archived
    start_date = db.Column(db.DateTime, default=utcnow)
    completed_at = db.Column(db.DateTime, nullable=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)
    milestones = db.relationship('GoalMilestone', backref='goal', lazy=True,
                                 cascade='all, delete-orphan', order_by='GoalMilestone.id')

    def to_dict(self, with_milestones=True):
        data = {
            'id': self.id,
            'title': self.title,
            'description': self.description,
            'specific': self.specific,
            'measurable': self.measurable,
            'achievable': self.achievable,
            'relevant': self.relevant,
            'timeBound': iso(self.deadline),
            'targetValue': self.target_value,
            'currentValue': self.current_value,
            'unit': self.unit,
            'category': self.category,
            'priority': self.priority,
            'progress': self.progress,
            'status': self.status,
            'startDate': iso(self.start_date),
            'completedAt': iso(self.completed_at),
            'createdAt': iso(self.created_at),
        }
        if with_milestones:
            data['milestones'] = [m.to_dict() for m in self.milestones]
        return data


class GoalMilestone(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    goal_id = db.Column(db.Integer, db.ForeignKey('goal.id'), nullable=False)
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=True)
    target_value = db.Column(db.Float, nullable=False)
    current_value = db.Column(db.Float, default=0)
    deadline = db.Column(db.DateTime, nullable=True)
    completed = db.Column(db.Boolean, default=False)
    completed_at = db.Column(db.DateTime, nullable=True)

    def to_dict(self):
        return {
            'id': self.id,
            'goalId': self.goal_id,
            'title': self.title,
            'description': self.description,
            'targetValue': self.target_value,
            'currentValue': self.current_value,
            'deadline': iso(self.deadline),
            'completed': self.completed,
            'completedAt': iso(self.completed_at),
        }


class Team(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.String(500), nullable=True)
    owner_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow)
    memberships = db.relationship('TeamMembership', backref='team', lazy=True, cascade='all, delete-orphan')
    projects = db.relationship('Project', backref='team', lazy=True, cascade='all, delete-orphan')

    def to_dict(self, detailed=False):
        data = {
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'ownerId': self.owner_id,
            'createdAt': iso(self.created_at),
            'memberCount': len(self.memberships),
            'projectCount': len(self.projects),
        }
        if detailed:
            data['members'] = [m.to_dict() for m in self.memberships]
            data['projects'] = [p.to_dict(with_tasks=True) for p in self.projects]
        return data


class TeamMembership(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    team_id = db.Column(db.Integer, db.ForeignKey('team.id'), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)
    role = db.Column(db.String(10), default='Member', nullable=False)  # Owner / Admin / Member
    joined_at = db.Column(db.DateTime, default=utcnow)
    user = db.relationship('User')

    __table_args__ = (
        db.UniqueConstraint('user_id', 'team_id', name='unique_team_member'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'teamId': self.team_id,
            'userId': self.user_id,
            'role': self.role,
            'joinedAt': iso(self.joined_at),
            'user': self.user.to_public_dict() if self.user else None,
        }


class Project(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    team_id = db.Column(db.Integer, db.ForeignKey('team.id'), nullable=False)
    name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.Text, nullable=True)
    status = db.Column(db.String(20), default='Active')  # Active / OnHold / Completed
    start_date = db.Column(db.DateTime, default=utcnow)
    end_date = db.Column(db.DateTime, nullable=True)
    tasks = db.relationship('ProjectTask', backref='project', lazy=True, cascade='all, delete-orphan')

    def to_dict(self, with_tasks=False):
        data = {
            'id': self.id,
            'teamId': self.team_id,
            'name': self.name,
            'description': self.description,
            'status': self.status,
            'startDate': iso(self.start_date),
            'endDate': iso(self.end_date),
        }
        if with_tasks:
            data['tasks'] = [t.to_dict() for t in self.tasks]
        return data


class ProjectTask(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(db.Integer, db.ForeignKey('project.id'), nullable=False)
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=True)
    assigned_to = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=True)
    priority = db.Column(db.String(10), default='Medium')
    status = db.Column(db.String(20), default='Todo', nullable=False)  # Todo / InProgress / Review / Completed
    due_date = db.Column(db.DateTime, nullable=True)
    completed_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, default=utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'projectId': self.project_id,
            'title': self.title,
            'description': self.description,
            'assignedTo': self.assigned_to,
            'priority': self.priority,
            'status': self.status,
            'dueDate': iso(self.due_date),
            'completedAt': iso(self.completed_at),
        }


class AccountabilityRequest(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    sender_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)
    recipient_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)
    message = db.Column(db.String(500), nullable=True)
    status = db.Column(db.String(20), default='Pending', nullable=False)  # Pending / Accepted / Rejected
    sent_at = db.Column(db.DateTime, default=utcnow)
    responded_at = db.Column(db.DateTime, nullable=True)

    sender = db.relationship('User', foreign_keys=[sender_id])
    recipient = db.relationship('User', foreign_keys=[recipient_id])

    def to_dict(self):
        return {
            'id': self.id,
            'senderId': self.sender_id,
            'recipientId': self.recipient_id,
            'sender': self.sender.to_public_dict() if self.sender else None,
            'recipient': self.recipient.to_public_dict() if self.recipient else None,
            'message': self.message,
            'status': self.status,
            'sentAt': iso(self.sent_at),
            'respondedAt': iso(self.responded_at),
        }


class AccountabilityPartnership(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)
    partner_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)
    status = db.Column(db.String(20), default='Active', nullable=False)  # Active / Paused / Ended
    check_in_frequency = db.Column(db.String(20), default='Weekly')     # Daily / Weekly / Bi-weekly
    shared_goals = db.Column(db.JSON, default=list)
    start_date = db.Column(db.DateTime, default=utcnow)
    end_date = db.Column(db.DateTime, nullable=True)
    last_check_in = db.Column(db.DateTime, nullable=True)

    partner = db.relationship('User', foreign_keys=[partner_id])

    def to_dict(self):
        return {
            'id': self.id,
            'userId': self.user_id,
            'partnerId': self.partner_id,
            'partner': self.partner.to_public_dict() if self.partner else None,
            'status': self.status,
            'checkInFrequency': self.check_in_frequency,
            'sharedGoals': self.shared_goals or [],
            'startDate': iso(self.start_date),
            'endDate': iso(self.end_date),
            'lastCheckIn': iso(self.last_check_in),
        }


class CalendarConnection(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)
    provider = db.Column(db.String(20), nullable=False)  # google / outlook / apple
    calendar_id = db.Column(db.String(255), nullable=False)
    access_token = db.Column(db.Text, nullable=False)
    refresh_token = db.Column(db.Text, nullable=True)
    token_expiry = db.Column(db.DateTime, nullable=True)
    sync_enabled = db.Column(db.Boolean, default=True)
    last_sync = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, default=utcnow)

    def to_dict(self):
        # tokens never leave the server
        return {
            'id': self.id,
            'provider': self.provider,
            'calendarId': self.calendar_id,
            'syncEnabled': self.sync_enabled,
            'lastSync': iso(self.last_sync),
            'tokenExpiry': iso(self.token_expiry),
            'createdAt': iso(self.created_at),
        }


class CalendarEvent(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)
    connection_id = db.Column(db.Integer, db.ForeignKey('calendar_connection.id'), nullable=True)
    external_id = db.Column(db.String(255), nullable=True)
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=True)
    start = db.Column(db.DateTime, nullable=False)
    end = db.Column(db.DateTime, nullable=False)
    location = db.Column(db.String(200), nullable=True)
    attendees = db.Column(db.JSON, default=list)
    reminders = db.Column(db.JSON, default=list)
    event_type = db.Column(db.String(20), default='Event')  # Task / Habit / Meeting / Event
    task_id = db.Column(db.Integer, db.ForeignKey('task.id'), nullable=True)
    is_all_day = db.Column(db.Boolean, default=False)
    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    connection = db.relationship('CalendarConnection')

    def to_dict(self):
        return {
            'id': self.id,
            'connectionId': self.connection_id,
            'externalId': self.external_id,
            'title': self.title,
            'description': self.description,
            'start': iso(self.start),
            'end': iso(self.end),
            'location': self.location,
            'attendees': self.attendees or [],
            'reminders': self.reminders or [],
            'eventType': self.event_type,
            'taskId': self.task_id,
            'isAllDay': self.is_all_day,
        }


class Notification(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(200), nullable=False)
    message = db.Column(db.String(1000), nullable=False)
    type = db.Column(db.String(10), default='info')  # info / success / warning / error
    read = db.Column(db.Boolean, default=False)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'title': self.title,
            'message': self.message,
            'type': self.type,
            'read': self.read,
            'createdAt': iso(self.created_at),
        }


class Achievement(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)
    type = db.Column(db.String(50), nullable=False)
    name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.String(300), nullable=False)
    icon = db.Column(db.String(10), nullable=False)
    earned_at = db.Column(db.DateTime, default=utcnow)

    __table_args__ = (
        db.UniqueConstraint('user_id', 'type', name='unique_user_achievement'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'type': self.type,
            'name': self.name,
            'description': self.description,
            'icon': self.icon,
            'earnedAt': iso(self.earned_at),
        }
