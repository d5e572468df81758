"""
Support Category Registry

Immutable table of ticket categories. Each category carries a base
severity weight that feeds the priority calculator.
"""

from typing import Dict, Iterable, Tuple

from ..models.ticket import Category, Subcategory
from .errors import InvalidInputError, NotFoundError


class CategoryRegistry:
    """
    Lookup of categories by key, in declaration order.

    Built once at startup and shared by reference. There is no
    mutation API.
    """

    def __init__(self, categories: Iterable[Category]):
        ordered = tuple(categories)
        by_key: Dict[str, Category] = {}
        for category in ordered:
            if category.key in by_key:
                raise InvalidInputError(f"Duplicate category key: {category.key}")
            by_key[category.key] = category
        self._ordered = ordered
        self._by_key = by_key

    def lookup(self, key: str) -> Category:
        try:
            return self._by_key[key]
        except KeyError:
            raise NotFoundError(f"Unknown category: {key}") from None

    def all(self) -> Tuple[Category, ...]:
        return self._ordered

    def __contains__(self, key: str) -> bool:
        return key in self._by_key

    def __len__(self) -> int:
        return len(self._ordered)


def _subs(*pairs) -> Tuple[Subcategory, ...]:
    return tuple(Subcategory(value=v, label=l) for v, l in pairs)


# =============================================================================
# DEFAULT CATEGORIES
# =============================================================================

DEFAULT_CATEGORIES: Tuple[Category, ...] = (
    Category(
        key="materiel",
        label="Matériel",
        severity_weight=2,
        subcategories=_subs(
            ("ordinateur", "Ordinateur (PC/Laptop)"),
            ("peripherique", "Périphérique (souris, clavier, écran)"),
            ("imprimante", "Imprimante / Scanner"),
            ("telephone", "Téléphone / Headset"),
            ("reseau", "Équipement réseau"),
        ),
    ),
    Category(
        key="logiciel",
        label="Logiciel",
        severity_weight=2,
        subcategories=_subs(
            ("installation", "Installation / Mise à jour"),
            ("erreur", "Erreur / Bug"),
            ("acces", "Accès / Permissions"),
            ("office365", "Office 365 / Teams"),
            ("erp", "ERP"),
        ),
    ),
    Category(
        key="reseau",
        label="Réseau & Connectivité",
        severity_weight=3,
        subcategories=_subs(
            ("internet", "Connexion Internet"),
            ("vpn", "VPN"),
            ("wifi", "Wi-Fi"),
            ("partage", "Partage de fichiers"),
        ),
    ),
    Category(
        key="compte",
        label="Compte & Accès",
        severity_weight=2,
        subcategories=_subs(
            ("creation", "Création de compte"),
            ("reinitialisation", "Réinitialisation mot de passe"),
            ("permissions", "Permissions / Droits"),
            ("desactivation", "Désactivation de compte"),
        ),
    ),
    Category(
        key="autre",
        label="Autre",
        severity_weight=1,
        subcategories=_subs(
            ("question", "Question générale"),
            ("formation", "Formation / Aide"),
            ("suggestion", "Suggestion d'amélioration"),
        ),
    ),
)


def default_registry() -> CategoryRegistry:
    return CategoryRegistry(DEFAULT_CATEGORIES)
