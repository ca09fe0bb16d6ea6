"""
Textes et helpers pour le workflow `/creer_groupe` (messages publics et réponses éphémères).
"""
from __future__ import annotations

from typing import Iterable


def mention(user_id: int) -> str:
    return f"<@{user_id}>"


def build_confirmation_request(group_name: str, creator_id: int, user_ids: Iterable[int], emoji: str) -> str:
    mentions = ", ".join(mention(u) for u in user_ids)
    return (
        f"Demande de création du groupe \"{group_name}\"\n\n"
        f"Créateur : {mention(creator_id)}\n"
        f"Membres invités : {mentions}\n\n"
        f"Réagissez avec {emoji} pour confirmer que vous rejoignez le groupe."
    )

def build_success(group_name: str, text_channel_id: int) -> str:
    return f"Le groupe \"{group_name}\" a été créé ! Rendez-vous dans <#{text_channel_id}>."

def build_partial(group_name: str, missing: Iterable[int]) -> str:
    return f"Rôle du groupe \"{group_name}\" non attribué à : {', '.join(mention(u) for u in missing)}"

def build_failure(group_name: str) -> str:
    return f"La création du groupe \"{group_name}\" a échoué. Contactez un administrateur."

def build_expired(group_name: str) -> str:
    return f"La demande de création du groupe \"{group_name}\" a expiré faute de confirmation."

def msg_request_sent() -> str: return "La demande de création du groupe a été envoyée."
def msg_missing_args() -> str: return "Erreur : le nom du groupe et les membres sont requis."
def msg_no_mentions() -> str: return "Erreur : aucune mention d'utilisateur valide."
def msg_self_included() -> str: return "Erreur : vous ne pouvez pas vous inclure parmi les membres du groupe."
def msg_name_too_long() -> str: return "Erreur : nom de groupe trop long (max 100)."
def msg_error() -> str: return "Erreur lors de la création du groupe."
def msg_not_ready() -> str: return "Workflow de groupes non initialisé."
def msg_no_pending() -> str: return "Aucune demande en attente."

def fmt_pending_line(group_name: str, channel_id: int, message_id: int, waiting: int) -> str:
    return f"• {group_name} | <#{channel_id}> `{message_id}` | {waiting} membre(s) requis"


__all__ = [name for name in globals().keys() if name.startswith(('msg_', 'fmt_', 'build_'))] + ["mention"]
