from datetime import datetime, timezone
from typing import List, Literal, Optional, Tuple
from skillswap.models.user import UserProfile

ALL_CATEGORIES = "All Categories"

SkillType = Literal["offered", "wanted"]
SortOption = Literal["newest", "rating", "name"]

_OLDEST = datetime.min.replace(tzinfo=timezone.utc)


def split_skill(skill: str) -> Tuple[Optional[str], str]:
    """'Cooking & Baking: Sourdough' -> ('Cooking & Baking', 'Sourdough')"""
    if ": " not in skill:
        return None, skill.strip()
    category, label = skill.split(": ", 1)
    return category.strip(), label.strip()


def public_view(user: UserProfile) -> UserProfile:
    """Profile as other users see it, skill lists blanked when showSkills is off"""
    if user.settings.privacy_settings.show_skills:
        return user
    return user.model_copy(update={"skills_offered": [], "skills_wanted": []})


def _skills(user: UserProfile, skill_type: SkillType) -> List[str]:
    return user.skills_offered if skill_type == "offered" else user.skills_wanted

def filter_by_search(users: List[UserProfile], term: str, skill_type: SkillType = "offered") -> List[UserProfile]:
    """Case-insensitive substring match against the chosen skill list"""
    term = (term or "").strip().lower()
    if not term:
        return list(users)
    return [u for u in users if any(term in skill.lower() for skill in _skills(u, skill_type))]

def filter_by_category(users: List[UserProfile], category: str, skill_type: SkillType = "offered") -> List[UserProfile]:
    if not category or category == ALL_CATEGORIES:
        return list(users)
    return [u for u in users if any(split_skill(skill)[0] == category for skill in _skills(u, skill_type))]


def _created_key(user: UserProfile) -> datetime:
    created = user.created_at
    if created is None:
        return _OLDEST
    # profiles written by other clients may carry naive timestamps
    return created if created.tzinfo else created.replace(tzinfo=timezone.utc)

def sort_users(users: List[UserProfile], sort_by: SortOption = "newest") -> List[UserProfile]:
    if sort_by == "newest":
        return sorted(users, key=_created_key, reverse=True)
    if sort_by == "rating":
        return sorted(users, key=lambda u: u.average_rating, reverse=True)
    if sort_by == "name":
        return sorted(users, key=lambda u: (u.display_name or "").lower())
    return list(users)


def browse_users(
    users: List[UserProfile],
    exclude_uid: Optional[str] = None,
    search: str = "",
    category: str = ALL_CATEGORIES,
    skill_type: SkillType = "offered",
    sort_by: SortOption = "newest",
) -> List[UserProfile]:
    result = [
        public_view(u) for u in users
        if u.uid != exclude_uid and u.settings.privacy_settings.show_profile
    ]
    result = filter_by_search(result, search, skill_type)
    result = filter_by_category(result, category, skill_type)
    return sort_users(result, sort_by)
