import base64
import binascii
import logging

from extensions import db
from models import GroupProfile, User, Role
from services.errors import NotFoundError, PermissionDenied, ValidationError
from services.persistence import commit_or_raise

logger = logging.getLogger(__name__)

GROUP_LEADER = "Group Leader"


def _require_leader(user):
    if user.role != Role.STUDENT or user.group_role != GROUP_LEADER:
        raise PermissionDenied("Only group leaders can manage a group profile.")


def _leader_member(leader):
    return {
        "id": leader.id,
        "full_name": leader.full_name,
        "registration_number": leader.registration_number,
    }


def taken_registration_numbers(exclude_leader_id=None):
    """Lowercased registration numbers already placed in some group."""
    taken = set()
    for profile in GroupProfile.query.all():
        if profile.leader_id == exclude_leader_id:
            continue
        taken.add(profile.leader.registration_number.lower())
        for member in profile.members or []:
            taken.add((member.get("registration_number") or "").lower())
    taken.discard("")
    return taken


def available_students(leader):
    """Students not yet in any group, for the member search."""
    taken = taken_registration_numbers(exclude_leader_id=leader.id)
    students = (
        User.query.filter(User.role == Role.STUDENT, User.id != leader.id)
        .order_by(User.full_name.asc())
        .all()
    )
    return [s for s in students if s.registration_number.lower() not in taken]


def _clean_members(leader, members):
    # leader always first, never duplicated
    cleaned = [_leader_member(leader)]
    seen = {leader.registration_number.lower()}
    taken = taken_registration_numbers(exclude_leader_id=leader.id)

    for member in members or []:
        full_name = (member.get("full_name") or "").strip()
        reg_no = (member.get("registration_number") or "").strip()
        if not full_name or not reg_no:
            raise ValidationError("Please provide both a full name and a registration number.")
        key = reg_no.lower()
        if key == leader.registration_number.lower():
            continue
        if key in seen:
            raise ValidationError("This registration number is already in the group.")
        if key in taken:
            raise ValidationError(f"Student '{reg_no}' already belongs to another group.")
        seen.add(key)
        cleaned.append({
            "id": member.get("id"),
            "full_name": full_name,
            "registration_number": reg_no,
        })
    return cleaned


def get_profile(leader_id):
    return db.session.get(GroupProfile, leader_id)


def group_for_student(student):
    """The profile the student leads or belongs to, if any."""
    own = get_profile(student.id)
    if own:
        return own
    reg_no = student.registration_number.lower()
    for profile in GroupProfile.query.all():
        if any((m.get("registration_number") or "").lower() == reg_no for m in profile.members or []):
            return profile
    return None


def save_profile(leader, data):
    _require_leader(leader)

    group_name = (data.get("group_name") or "").strip()
    project_brief = (data.get("project_brief") or "").strip()
    if not group_name or not project_brief:
        raise ValidationError("Group Name and Project Brief are required.")

    members = _clean_members(leader, data.get("members"))
    assignment = _check_assignment(data["assignment"]) if data.get("assignment") else None

    profile = get_profile(leader.id)
    if not profile:
        profile = GroupProfile(leader_id=leader.id)
        db.session.add(profile)
    profile.group_name = group_name
    profile.project_brief = project_brief
    profile.members = members
    if assignment:
        _attach_assignment(profile, assignment)

    commit_or_raise("group_profiles")
    logger.info("Saved group profile for %s", leader.registration_number)
    return profile


def _check_assignment(assignment):
    name = (assignment.get("name") or "").strip()
    payload = assignment.get("data") or ""
    if not name or not payload:
        raise ValidationError("Assignment file name and data are required.")
    try:
        base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError):
        raise ValidationError("Assignment data must be base64 encoded.")
    return {
        "name": name,
        "type": assignment.get("type") or "application/octet-stream",
        "data": payload,
    }


def _attach_assignment(profile, assignment):
    profile.assignment_name = assignment["name"]
    profile.assignment_type = assignment["type"]
    profile.assignment_data = assignment["data"]


def upload_assignment(leader, filename, content_type, raw_bytes):
    _require_leader(leader)
    profile = get_profile(leader.id)
    if not profile:
        raise ValidationError("Create your group profile before uploading an assignment.")
    _attach_assignment(profile, {
        "name": filename,
        "type": content_type,
        "data": base64.b64encode(raw_bytes).decode("ascii"),
    })
    commit_or_raise("group_profiles")
    return profile


def list_assignments():
    profiles = (
        GroupProfile.query.filter(GroupProfile.assignment_name.isnot(None))
        .order_by(GroupProfile.group_name.asc())
        .all()
    )
    return [
        {
            "leader_id": p.leader_id,
            "group_name": p.group_name,
            "leader_name": p.leader.full_name,
            "member_count": len(p.members or []),
            "assignment_name": p.assignment_name,
            "assignment_type": p.assignment_type,
        }
        for p in profiles
    ]


def assignment_file(leader_id):
    """(name, content type, bytes) of a group's assignment."""
    profile = get_profile(leader_id)
    if not profile or not profile.assignment_name:
        raise NotFoundError("Assignment not found")
    return (
        profile.assignment_name,
        profile.assignment_type,
        base64.b64decode(profile.assignment_data),
    )


def list_groups(course_id=None):
    profiles = GroupProfile.query.order_by(GroupProfile.group_name.asc()).all()
    if course_id:
        profiles = [
            p for p in profiles
            if any(e.course_id == course_id for e in p.leader.enrollments)
        ]
    return profiles
