"""
Approval capabilities.

The leave workflow never inspects roles directly. It asks an ApprovalPolicy
whether an Actor may act on a given employee, and the policy decides. The
default RoleBasedApprovalPolicy maps the organisation's roles onto those
capabilities; tests or deployments can inject a different policy.
"""
from dataclasses import dataclass, field
from typing import FrozenSet, Optional, Protocol

from sqlalchemy import or_
from sqlalchemy.orm import Query, Session

from lucia_hrms.models.branch import Branch
from lucia_hrms.models.employee import Employee
from lucia_hrms.models.team import Team
from lucia_hrms.models.user import User, UserRole


@dataclass(frozen=True)
class Actor:
    """Resolved caller identity: who they are and what they oversee."""
    user_id: int
    role: UserRole
    employee_id: Optional[int] = None
    branch_ids: FrozenSet[int] = field(default_factory=frozenset)
    team_ids: FrozenSet[int] = field(default_factory=frozenset)


def resolve_actor(db: Session, user: User) -> Actor:
    """Build an Actor from an authenticated user and the branches/teams they run."""
    branch_ids = {
        row.id for row in db.query(Branch.id).filter(
            or_(Branch.manager_user_id == user.id, Branch.admin_user_id == user.id)
        )
    }
    team_ids = {row.id for row in db.query(Team.id).filter(Team.leader_user_id == user.id)}
    return Actor(
        user_id=user.id,
        role=user.role,
        employee_id=user.employee_id,
        branch_ids=frozenset(branch_ids),
        team_ids=frozenset(team_ids),
    )


class ApprovalPolicy(Protocol):
    def can_approve_primary(self, actor: Actor, employee: Employee) -> bool: ...

    def can_approve_final(self, actor: Actor) -> bool: ...

    def has_primary_scope(self, actor: Actor) -> bool: ...

    def can_view_employee(self, actor: Actor, employee: Employee) -> bool: ...

    def can_adjust_balance(self, actor: Actor, employee: Employee) -> bool: ...

    def scope_query(self, actor: Actor, query: Query) -> Query: ...


ORG_ROLES = frozenset({UserRole.SUPER_ADMIN, UserRole.ADMIN, UserRole.HR_MANAGER})
BRANCH_ROLES = frozenset({UserRole.BRANCH_ADMIN, UserRole.BRANCH_MANAGER})


class RoleBasedApprovalPolicy:
    """
    Default capability mapping.

    - Organisation roles approve anyone at either stage and see everything.
    - Branch roles take primary decisions for employees of their branches.
    - Team leaders take primary decisions for members of their teams.
    - Nobody takes the primary decision on their own request.
    """

    def _oversees(self, actor: Actor, employee: Employee) -> bool:
        if actor.role in ORG_ROLES:
            return True
        if actor.role in BRANCH_ROLES:
            return employee.branch_id is not None and employee.branch_id in actor.branch_ids
        if actor.role == UserRole.TEAM_LEADER:
            return employee.team_id is not None and employee.team_id in actor.team_ids
        return False

    def can_approve_primary(self, actor: Actor, employee: Employee) -> bool:
        if actor.employee_id is not None and actor.employee_id == employee.id:
            return False
        return self._oversees(actor, employee)

    def can_approve_final(self, actor: Actor) -> bool:
        return actor.role in ORG_ROLES

    def has_primary_scope(self, actor: Actor) -> bool:
        return actor.role in ORG_ROLES or actor.role in BRANCH_ROLES or actor.role == UserRole.TEAM_LEADER

    def can_view_employee(self, actor: Actor, employee: Employee) -> bool:
        return actor.employee_id == employee.id or self._oversees(actor, employee)

    def can_adjust_balance(self, actor: Actor, employee: Employee) -> bool:
        if actor.role in ORG_ROLES:
            return True
        if actor.role in BRANCH_ROLES:
            return self._oversees(actor, employee)
        return False

    def scope_query(self, actor: Actor, query: Query) -> Query:
        """
        Restrict a query that already joins Employee to the rows the actor may see.
        """
        if actor.role in ORG_ROLES:
            return query

        own = Employee.id == actor.employee_id if actor.employee_id is not None else None
        if actor.role in BRANCH_ROLES and actor.branch_ids:
            scope = Employee.branch_id.in_(actor.branch_ids)
        elif actor.role == UserRole.TEAM_LEADER and actor.team_ids:
            scope = Employee.team_id.in_(actor.team_ids)
        else:
            scope = None

        clauses = [c for c in (own, scope) if c is not None]
        if not clauses:
            # No employee record and nothing overseen: nothing is visible
            return query.filter(Employee.id.is_(None))
        return query.filter(or_(*clauses))


default_policy = RoleBasedApprovalPolicy()
