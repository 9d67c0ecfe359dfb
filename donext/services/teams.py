import logging

from donext.errors import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from donext.models import Project, ProjectTask, Team, TeamMembership, User, utcnow
from donext.states import PROJECT_TASK_STATUS

logger = logging.getLogger(__name__)

MANAGER_ROLES = {'Owner', 'Admin'}


def membership(session, team_id, user_id):
    return session.query(TeamMembership).filter_by(team_id=team_id, user_id=user_id).first()


def require_member(session, team_id, user_id, roles=None):
    """Return the caller's membership, or raise 404/403."""
    team = session.get(Team, team_id)
    member = membership(session, team_id, user_id) if team else None
    if member is None:
        raise NotFoundError("Team not found")
    if roles and member.role not in roles:
        raise AuthorizationError("Only team owners and admins can do that")
    return member


def list_teams(session, user_id):
    return session.query(Team).join(TeamMembership).filter(
        TeamMembership.user_id == user_id
    ).order_by(Team.created_at.desc()).all()


def get_team(session, user_id, team_id):
    require_member(session, team_id, user_id)
    return session.get(Team, team_id)


def create_team(session, user_id, name, description=None):
    team = Team(name=name, description=description, owner_id=user_id)
    session.add(team)
    session.flush()
    session.add(TeamMembership(team_id=team.id, user_id=user_id, role='Owner'))
    session.commit()
    logger.info("Team %s created by user %s", team.id, user_id)
    return team


def add_member(session, user_id, team_id, member_email, role='Member'):
    require_member(session, team_id, user_id, roles=MANAGER_ROLES)

    new_user = session.query(User).filter_by(email=member_email.strip().lower()).first()
    if not new_user:
        raise NotFoundError("User not found")
    if membership(session, team_id, new_user.id):
        raise ConflictError("User is already a team member")

    member = TeamMembership(team_id=team_id, user_id=new_user.id, role=role)
    session.add(member)
    session.commit()
    return member


def remove_member(session, user_id, team_id, member_id):
    require_member(session, team_id, user_id, roles=MANAGER_ROLES)
    team = session.get(Team, team_id)
    if member_id == team.owner_id:
        raise ValidationError("Cannot remove team owner")

    member = membership(session, team_id, member_id)
    if not member:
        raise NotFoundError("Member not found")
    session.delete(member)
    session.commit()


def create_project(session, user_id, data):
    require_member(session, data.team_id, user_id, roles=MANAGER_ROLES)
    if data.start_date and data.end_date and data.end_date < data.start_date:
        raise ValidationError("End date must be after start date")

    project = Project(
        team_id=data.team_id,
        name=data.name,
        description=data.description,
        start_date=data.start_date or utcnow(),
        end_date=data.end_date,
    )
    session.add(project)
    session.commit()
    return project


def _get_project(session, user_id, project_id):
    project = session.get(Project, project_id)
    if not project or not membership(session, project.team_id, user_id):
        raise NotFoundError("Project not found")
    return project


def create_project_task(session, user_id, data):
    project = _get_project(session, user_id, data.project_id)
    if data.assigned_to is not None and not membership(session, project.team_id, data.assigned_to):
        raise ValidationError("Assignee must be a team member")

    task = ProjectTask(
        project_id=project.id,
        title=data.title,
        description=data.description,
        assigned_to=data.assigned_to,
        priority=data.priority,
        due_date=data.due_date,
    )
    session.add(task)
    session.commit()
    return task


def update_project_task_status(session, user_id, task_id, status):
    task = session.get(ProjectTask, task_id)
    if not task or not membership(session, task.project.team_id, user_id):
        raise NotFoundError("Task not found")

    PROJECT_TASK_STATUS.check(task.status, status)
    if status == 'Completed' and task.status != 'Completed':
        task.completed_at = utcnow()
    elif status != 'Completed':
        task.completed_at = None
    task.status = status
    session.commit()
    return task


def team_analytics(session, user_id, team_id):
    team = get_team(session, user_id, team_id)
    tasks = [t for p in team.projects for t in p.tasks]
    completed = [t for t in tasks if t.status == 'Completed']

    member_stats = []
    for m in team.memberships:
        assigned = [t for t in tasks if t.assigned_to == m.user_id]
        done = sum(1 for t in assigned if t.status == 'Completed')
        member_stats.append({
            'userId': m.user_id,
            'name': m.user.name,
            'role': m.role,
            'assignedTasks': len(assigned),
            'completedTasks': done,
            'completionRate': round(done / len(assigned) * 100, 1) if assigned else 0,
        })
    member_stats.sort(key=lambda s: s['completionRate'], reverse=True)

    return {
        'teamId': team.id,
        'memberCount': len(team.memberships),
        'projectCount': len(team.projects),
        'activeProjects': sum(1 for p in team.projects if p.status == 'Active'),
        'completedProjects': sum(1 for p in team.projects if p.status == 'Completed'),
        'totalTasks': len(tasks),
        'completedTasks': len(completed),
        'taskCompletionRate': round(len(completed) / len(tasks) * 100, 1) if tasks else 0,
        'memberStats': member_stats,
    }
