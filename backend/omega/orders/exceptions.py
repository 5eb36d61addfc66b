"""Exceptions spécifiques au domaine Order."""
from omega.core.exceptions import NotFoundException


class OrderNotFoundException(NotFoundException):
    """Levée lorsqu'une commande spécifique n'est pas trouvée."""
    def __init__(self, order_id: int):
        super().__init__(f"Commande avec ID {order_id} non trouvée.")
        self.order_id = order_id
