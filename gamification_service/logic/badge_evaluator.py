"""
Badge Service - catalog and unlock evaluation

A badge is unlocked when all of its {metric, operator, value} descriptors hold
and, if it has one, its predicate returns True. Evaluation is pure: stats in,
badge ids out. Failures in one badge never affect the others.
"""

from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Set, Union
import logging

from gamification_service.schemas import Badge, BadgeCategory, BadgeCondition, BadgeView, UserStats

logger = logging.getLogger(__name__)

ALL_MODULES = tuple(f"mod{i}" for i in range(1, 10))


def _gte(metric: str, value: float) -> BadgeCondition:
    return BadgeCondition(metric=metric, operator='>=', value=value)


def _badge(badge_id, name, description, icon, category, tier, *conditions, hidden=False, predicate=None) -> Badge:
    return Badge(
        id=badge_id,
        name=name,
        description=description,
        icon=icon,
        category=category,
        tier=tier,
        hidden=hidden,
        conditions=tuple(conditions),
        predicate=predicate,
    )


def _measured_fast_resolver(stats: UserStats) -> bool:
    # An average only means something once a resolution time has been reported
    return stats.resolutionTimeSamples > 0 and stats.avgResolutionTime <= 4


def _touched_every_module(stats: UserStats) -> bool:
    return all(stats.contributionsPerModule.get(module, 0) > 0 for module in ALL_MODULES)


# ============================================================================
# Catalog
# ============================================================================

_INC = BadgeCategory.INCIDENTS
_MNT = BadgeCategory.MAINTENANCE
_QLT = BadgeCategory.QUALITY
_LST = BadgeCategory.LOST_FOUND
_PRC = BadgeCategory.PROCEDURES
_GEN = BadgeCategory.GENERAL
_SPC = BadgeCategory.SPECIAL

BADGES: Sequence[Badge] = (
    # Incidents
    _badge('incident_reporter', 'Rapporteur', 'Signaler votre premier incident', '📢', _INC, 1,
           _gte('incidentsCreated', 1)),
    _badge('incident_reporter_silver', 'Rapporteur Vigilant', 'Signaler 10 incidents', '📢', _INC, 2,
           _gte('incidentsCreated', 10)),
    _badge('incident_reporter_gold', 'Sentinelle', 'Signaler 50 incidents', '📢', _INC, 3,
           _gte('incidentsCreated', 50)),
    _badge('problem_solver', 'Résolveur', 'Résoudre votre premier incident', '🔧', _INC, 1,
           _gte('incidentsResolved', 1)),
    _badge('problem_solver_silver', 'Résolveur Confirmé', 'Résoudre 25 incidents', '🔧', _INC, 2,
           _gte('incidentsResolved', 25)),
    _badge('problem_solver_gold', 'Maître Résolveur', 'Résoudre 100 incidents', '🔧', _INC, 3,
           _gte('incidentsResolved', 100)),
    _badge('crisis_manager', 'Gestionnaire de Crise', 'Résoudre un incident critique', '🚨', _INC, 2,
           _gte('criticalIncidentsResolved', 1)),
    _badge('crisis_manager_gold', 'Pompier d\'Élite', 'Résoudre 10 incidents critiques', '🚨', _INC, 3,
           _gte('criticalIncidentsResolved', 10)),
    _badge('speed_solver', 'Éclair', 'Résoudre 5 incidents en moins de 4h en moyenne', '⚡', _INC, 2,
           _gte('incidentsResolved', 5), predicate=_measured_fast_resolver),

    # Maintenance
    _badge('maintenance_requester', 'Demandeur', 'Créer votre première demande de maintenance', '🛠️', _MNT, 1,
           _gte('maintenanceCreated', 1)),
    _badge('maintenance_completer', 'Technicien', 'Terminer 5 maintenances', '🔩', _MNT, 1,
           _gte('maintenanceCompleted', 5)),
    _badge('maintenance_completer_silver', 'Technicien Expert', 'Terminer 20 maintenances', '🔩', _MNT, 2,
           _gte('maintenanceCompleted', 20)),
    _badge('maintenance_completer_gold', 'Chef d\'Atelier', 'Terminer 75 maintenances', '🔩', _MNT, 3,
           _gte('maintenanceCompleted', 75)),
    _badge('quick_fixer', 'Réparateur Express', 'Terminer 3 maintenances en avance', '⏱️', _MNT, 2,
           _gte('quickMaintenanceCompleted', 3)),

    # Quality
    _badge('quality_checker', 'Contrôleur', 'Réaliser votre premier contrôle qualité', '✅', _QLT, 1,
           _gte('qualitySubmissionCount', 1)),
    _badge('quality_checker_silver', 'Inspecteur', 'Réaliser 10 contrôles qualité', '✅', _QLT, 2,
           _gte('qualitySubmissionCount', 10)),
    _badge('quality_checker_gold', 'Auditeur', 'Réaliser 30 contrôles qualité', '✅', _QLT, 3,
           _gte('qualitySubmissionCount', 30)),
    _badge('perfectionist', 'Perfectionniste', 'Obtenir une moyenne qualité de 95 ou plus', '💎', _QLT, 3,
           _gte('highQualityChecks', 1), _gte('avgQualityScore', 95)),
    _badge('consistency_king', 'Roi de la Constance', 'Maintenir 90 de moyenne sur 5 contrôles', '👑', _QLT, 2,
           _gte('qualitySubmissionCount', 5), _gte('avgQualityScore', 90)),

    # Lost & found
    _badge('lost_finder', 'Trouveur', 'Enregistrer votre premier objet trouvé', '🔍', _LST, 1,
           _gte('lostItemsRegistered', 1)),
    _badge('lost_finder_silver', 'Fin Limier', 'Enregistrer 15 objets trouvés', '🔍', _LST, 2,
           _gte('lostItemsRegistered', 15)),
    _badge('lost_finder_gold', 'Détective', 'Enregistrer 50 objets trouvés', '🔍', _LST, 3,
           _gte('lostItemsRegistered', 50)),
    _badge('item_returner', 'Bon Samaritain', 'Restituer 5 objets à leur propriétaire', '🎁', _LST, 1,
           _gte('lostItemsReturned', 5)),
    _badge('item_returner_gold', 'Ange Gardien', 'Restituer 20 objets à leur propriétaire', '🎁', _LST, 3,
           _gte('lostItemsReturned', 20)),

    # Procedures
    _badge('procedure_creator', 'Rédacteur', 'Créer votre première procédure', '📝', _PRC, 1,
           _gte('proceduresCreated', 1)),
    _badge('procedure_creator_silver', 'Auteur', 'Créer 5 procédures', '📝', _PRC, 2,
           _gte('proceduresCreated', 5)),
    _badge('procedure_creator_gold', 'Encyclopédiste', 'Créer 15 procédures', '📝', _PRC, 3,
           _gte('proceduresCreated', 15)),
    _badge('avid_reader', 'Lecteur Assidu', 'Lire 10 procédures', '📚', _PRC, 1,
           _gte('proceduresRead', 10)),
    _badge('avid_reader_silver', 'Érudit', 'Lire 25 procédures', '📚', _PRC, 2,
           _gte('proceduresRead', 25)),
    _badge('validator', 'Validateur', 'Valider 10 procédures', '🖋️', _PRC, 2,
           _gte('proceduresValidated', 10)),

    # General
    _badge('first_steps', 'Premiers Pas', 'Se connecter pour la première fois', '👣', _GEN, 1,
           _gte('totalLogins', 1)),
    _badge('regular_user', 'Habitué', 'Se connecter 30 jours', '📅', _GEN, 2,
           _gte('totalLogins', 30)),
    _badge('dedicated_user', 'Pilier', 'Se connecter 100 jours', '🏛️', _GEN, 3,
           _gte('totalLogins', 100)),
    _badge('streak_starter', 'Lancé', 'Série de 3 jours', '🔥', _GEN, 1,
           _gte('currentStreak', 3)),
    _badge('streak_master', 'Inarrêtable', 'Série de 14 jours', '🔥', _GEN, 2,
           _gte('currentStreak', 14)),
    _badge('streak_legend', 'Légende Vivante', 'Série de 30 jours', '🔥', _GEN, 3,
           _gte('currentStreak', 30)),
    _badge('team_player', 'Esprit d\'Équipe', 'Aider 5 collègues', '🤝', _GEN, 2,
           _gte('helpProvided', 5)),
    _badge('appreciated', 'Apprécié', 'Recevoir 10 remerciements', '💖', _GEN, 2,
           _gte('thanksReceived', 10)),
    _badge('goal_achiever', 'Objectif Atteint', 'Compléter 5 défis hebdomadaires', '🎯', _GEN, 2,
           _gte('weeklyGoalsCompleted', 5)),

    # Special (hidden until earned)
    _badge('jack_of_all_trades', 'Touche-à-tout', 'Contribuer à tous les modules', '🃏', _SPC, 3,
           hidden=True, predicate=_touched_every_module),
    _badge('night_owl', 'Oiseau de Nuit', 'Se connecter après 22h 10 fois', '🦉', _SPC, 2,
           _gte('lateLogins', 10), hidden=True),
    _badge('early_bird', 'Lève-tôt', 'Se connecter avant 7h 10 fois', '🐦', _SPC, 2,
           _gte('earlyLogins', 10), hidden=True),
    _badge('perfect_week', 'Semaine Parfaite', 'Être actif 7 jours d\'affilée', '🌈', _SPC, 2,
           _gte('currentStreak', 7), hidden=True),
)

_BADGES_BY_ID: Dict[str, Badge] = {badge.id: badge for badge in BADGES}


# ============================================================================
# Condition Evaluation
# ============================================================================

def _metric_value(stats: Union[UserStats, Mapping[str, Any]], metric: str) -> Any:
    if isinstance(stats, Mapping):
        return stats.get(metric, 0)
    return getattr(stats, metric, 0)


def evaluate_condition(
    condition: Union[BadgeCondition, Mapping[str, Any]],
    stats: Union[UserStats, Mapping[str, Any]]
) -> bool:
    """
    Evaluate one {metric, operator, value} descriptor against stats.

    Args:
        condition: BadgeCondition or a plain dict
            - {"metric": "incidentsResolved", "operator": ">=", "value": 25}
        stats: UserStats or a plain dict of metrics (missing metric counts as 0)

    Returns:
        True if condition is met, False otherwise (including unknown operators)
    """
    if isinstance(condition, BadgeCondition):
        metric, operator, required_value = condition.metric, condition.operator, condition.value
    else:
        metric = condition.get('metric')
        operator = condition.get('operator', '>=')
        required_value = condition.get('value', 0)

    current_value = _metric_value(stats, metric)

    if operator == '>=':
        result = current_value >= required_value
    elif operator == '>':
        result = current_value > required_value
    elif operator == '==':
        result = current_value == required_value
    elif operator == '<=':
        result = current_value <= required_value
    elif operator == '<':
        result = current_value < required_value
    else:
        logger.warning(f"Unknown operator: {operator}")
        return False

    logger.debug(
        f"Condition eval: {metric} {operator} {required_value} "
        f"(current: {current_value}) -> {result}"
    )

    return result


def is_unlocked(badge: Badge, stats: UserStats) -> bool:
    """
    True when every descriptor holds and the predicate (if any) passes.

    Any exception is logged and counts as "not satisfied" for this badge only.
    """
    try:
        if not all(evaluate_condition(condition, stats) for condition in badge.conditions):
            return False
        if badge.predicate is not None and not badge.predicate(stats):
            return False
        return True
    except Exception:
        logger.error(f"Error evaluating badge {badge.id} for user {stats.userId}", exc_info=True)
        return False


def unlocked_badges(stats: UserStats, catalog: Sequence[Badge] = BADGES) -> Set[str]:
    """Ids of every catalog badge whose rule holds for these stats"""
    return {badge.id for badge in catalog if is_unlocked(badge, stats)}


def diff_new_badges(
    old_stats: UserStats,
    new_stats: UserStats,
    already_unlocked: Iterable[str],
    catalog: Sequence[Badge] = BADGES
) -> List[Badge]:
    """
    Badges unlocked by new_stats that are not in already_unlocked.

    Returned in catalog order. Calling again with the updated set returns [].
    old_stats is not re-evaluated: a badge whose rule held before but was never
    recorded is still granted now.
    """
    owned = set(already_unlocked)
    new_badges = [
        badge for badge in catalog
        if badge.id not in owned and is_unlocked(badge, new_stats)
    ]

    for badge in new_badges:
        logger.info(f"User {new_stats.userId} unlocked badge {badge.id} ({badge.name})")

    return new_badges


# ============================================================================
# Read helpers
# ============================================================================

def get_badge(badge_id: str) -> Optional[Badge]:
    return _BADGES_BY_ID.get(badge_id)


def total_available(catalog: Sequence[Badge] = BADGES) -> int:
    """Non-hidden badges count towards the total shown to users"""
    return sum(1 for badge in catalog if not badge.hidden)


def visible_badges(stats: UserStats, catalog: Sequence[Badge] = BADGES) -> List[BadgeView]:
    """Every non-hidden badge plus the hidden ones already earned"""
    earned = set(stats.badges)
    return [
        BadgeView.from_badge(badge, earned=badge.id in earned)
        for badge in catalog
        if not badge.hidden or badge.id in earned
    ]


def group_by_category(badges: Iterable[Union[Badge, BadgeView]]) -> Dict[str, List]:
    """Group badges by category; every category is present, possibly empty"""
    grouped: Dict[str, List] = {category.value: [] for category in BadgeCategory}
    for badge in badges:
        grouped[BadgeCategory(badge.category).value].append(badge)
    return grouped


def badges_for_category(
    stats: UserStats,
    category: Union[BadgeCategory, str],
    catalog: Sequence[Badge] = BADGES
) -> List[BadgeView]:
    """
    Visible badges of one category.

    Raises:
        ValueError: unknown category
    """
    wanted = BadgeCategory(category)
    return [view for view in visible_badges(stats, catalog) if view.category == wanted]


def badge_gallery(stats: UserStats, catalog: Sequence[Badge] = BADGES) -> List[BadgeView]:
    """
    Whole catalog with earned flags.

    Hidden badges not yet earned keep their slot but their name and
    description are masked.
    """
    earned = set(stats.badges)
    gallery = []
    for badge in catalog:
        view = BadgeView.from_badge(badge, earned=badge.id in earned)
        if badge.hidden and not view.earned:
            view = view.model_copy(update={'name': '???', 'description': 'Badge secret', 'icon': '❓'})
        gallery.append(view)
    return gallery
