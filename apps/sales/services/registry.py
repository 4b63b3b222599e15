"""
State Registry

Declared, closed transition graph for every document type. Anything not
listed here is denied: unknown types, unknown states and undeclared edges.
Each edge carries the permission the actor needs and whether a free-text
reason is mandatory.
"""
from dataclasses import dataclass
from typing import Dict, FrozenSet, List, Optional, Tuple

from apps.accounts import permissions as perms


class DocumentType:
    QUOTE = 'quote'
    SALE_ORDER = 'sale_order'
    DELIVERY = 'delivery'
    INVOICE = 'invoice'
    CLIENT_PAYMENT = 'client_payment'
    TASK = 'task'

    ALL = (QUOTE, SALE_ORDER, DELIVERY, INVOICE, CLIENT_PAYMENT, TASK)


@dataclass(frozen=True)
class Edge:
    to_state: str
    permission: Optional[str] = None
    reason_required: bool = False


@dataclass(frozen=True)
class StateGraph:
    states: Tuple[str, ...]
    initial: str
    final: FrozenSet[str]
    edges: Dict[str, Dict[str, Edge]]

    def edge(self, from_state, to_state) -> Optional[Edge]:
        return self.edges.get(from_state, {}).get(to_state)


def _graph(states, final, transitions):
    """
    transitions: {from_state: [(to_state, permission, reason_required), ...]}
    """
    edges = {}
    for from_state, targets in transitions.items():
        edges[from_state] = {
            to_state: Edge(to_state, permission, reason)
            for to_state, permission, reason in targets
        }
    return StateGraph(states=tuple(states), initial=states[0], final=frozenset(final), edges=edges)


QUOTE_GRAPH = _graph(
    states=[
        'BORRADOR', 'PENDIENTE_APROBACION', 'APROBADA', 'ENVIADA', 'EN_NEGOCIACION',
        'ACEPTADA', 'CONVERTIDA', 'PERDIDA', 'VENCIDA', 'CANCELADA',
    ],
    final=['CONVERTIDA', 'PERDIDA', 'VENCIDA', 'CANCELADA'],
    transitions={
        'BORRADOR': [
            ('PENDIENTE_APROBACION', perms.QUOTES_EDIT, False),
            ('ENVIADA', perms.QUOTES_EDIT, False),
            ('CANCELADA', perms.QUOTES_EDIT, True),
        ],
        'PENDIENTE_APROBACION': [
            ('APROBADA', perms.QUOTES_APPROVE, False),
            ('BORRADOR', perms.QUOTES_APPROVE, False),
            ('CANCELADA', perms.QUOTES_EDIT, True),
        ],
        'APROBADA': [
            ('ENVIADA', perms.QUOTES_EDIT, False),
            ('CANCELADA', perms.QUOTES_EDIT, True),
        ],
        'ENVIADA': [
            ('EN_NEGOCIACION', perms.QUOTES_EDIT, False),
            ('ACEPTADA', perms.QUOTES_EDIT, False),
            ('CONVERTIDA', perms.QUOTES_EDIT, False),
            ('PERDIDA', perms.QUOTES_EDIT, True),
            ('VENCIDA', perms.QUOTES_EDIT, False),
            ('CANCELADA', perms.QUOTES_EDIT, True),
        ],
        'EN_NEGOCIACION': [
            ('ENVIADA', perms.QUOTES_EDIT, False),
            ('ACEPTADA', perms.QUOTES_EDIT, False),
            ('PERDIDA', perms.QUOTES_EDIT, True),
            ('VENCIDA', perms.QUOTES_EDIT, False),
            ('CANCELADA', perms.QUOTES_EDIT, True),
        ],
        'ACEPTADA': [
            ('CONVERTIDA', perms.QUOTES_EDIT, False),
        ],
    },
)

SALE_ORDER_GRAPH = _graph(
    states=[
        'BORRADOR', 'CONFIRMADA', 'EN_PREPARACION', 'PARCIALMENTE_ENTREGADA', 'ENTREGADA',
        'PARCIALMENTE_FACTURADA', 'FACTURADA', 'CERRADA', 'CANCELADA',
    ],
    final=['CERRADA', 'CANCELADA'],
    transitions={
        'BORRADOR': [
            ('CONFIRMADA', perms.ORDERS_EDIT, False),
            ('CANCELADA', perms.ORDERS_EDIT, True),
        ],
        'CONFIRMADA': [
            ('EN_PREPARACION', perms.ORDERS_EDIT, False),
            ('CANCELADA', perms.ORDERS_EDIT, True),
        ],
        'EN_PREPARACION': [
            ('PARCIALMENTE_ENTREGADA', perms.ORDERS_EDIT, False),
            ('ENTREGADA', perms.ORDERS_EDIT, False),
            ('CANCELADA', perms.ORDERS_EDIT, True),
        ],
        'PARCIALMENTE_ENTREGADA': [
            ('ENTREGADA', perms.ORDERS_EDIT, False),
        ],
        'ENTREGADA': [
            ('PARCIALMENTE_FACTURADA', perms.ORDERS_EDIT, False),
            ('FACTURADA', perms.ORDERS_EDIT, False),
        ],
        'PARCIALMENTE_FACTURADA': [
            ('FACTURADA', perms.ORDERS_EDIT, False),
        ],
        'FACTURADA': [
            ('CERRADA', perms.ORDERS_EDIT, False),
        ],
    },
)

DELIVERY_GRAPH = _graph(
    states=[
        'PENDIENTE', 'EN_PREPARACION', 'LISTA_PARA_DESPACHO', 'EN_TRANSITO', 'RETIRADA',
        'ENTREGADA', 'ENTREGA_FALLIDA', 'CANCELADA',
    ],
    final=['ENTREGADA', 'CANCELADA'],
    transitions={
        'PENDIENTE': [
            ('EN_PREPARACION', perms.DELIVERIES_EDIT, False),
            ('CANCELADA', perms.DELIVERIES_EDIT, True),
        ],
        'EN_PREPARACION': [
            ('LISTA_PARA_DESPACHO', perms.DELIVERIES_EDIT, False),
            ('CANCELADA', perms.DELIVERIES_EDIT, True),
        ],
        'LISTA_PARA_DESPACHO': [
            ('EN_TRANSITO', perms.DELIVERIES_EDIT, False),
            ('RETIRADA', perms.DELIVERIES_EDIT, False),
            ('CANCELADA', perms.DELIVERIES_EDIT, True),
        ],
        'EN_TRANSITO': [
            ('ENTREGADA', perms.DELIVERIES_EDIT, False),
            ('ENTREGA_FALLIDA', perms.DELIVERIES_EDIT, True),
        ],
        'RETIRADA': [
            ('ENTREGADA', perms.DELIVERIES_EDIT, False),
        ],
        'ENTREGA_FALLIDA': [
            ('EN_TRANSITO', perms.DELIVERIES_EDIT, False),
        ],
    },
)

INVOICE_GRAPH = _graph(
    states=['BORRADOR', 'EMITIDA', 'ENVIADA', 'PARCIALMENTE_COBRADA', 'COBRADA', 'VENCIDA', 'ANULADA'],
    final=['COBRADA', 'ANULADA'],
    transitions={
        'BORRADOR': [
            ('EMITIDA', perms.INVOICES_EDIT, False),
            ('ANULADA', perms.INVOICES_EDIT, True),
        ],
        'EMITIDA': [
            ('ENVIADA', perms.INVOICES_EDIT, False),
            ('PARCIALMENTE_COBRADA', perms.INVOICES_EDIT, False),
            ('COBRADA', perms.INVOICES_EDIT, False),
            ('VENCIDA', perms.INVOICES_EDIT, False),
            ('ANULADA', perms.INVOICES_EDIT, True),
        ],
        'ENVIADA': [
            ('PARCIALMENTE_COBRADA', perms.INVOICES_EDIT, False),
            ('COBRADA', perms.INVOICES_EDIT, False),
            ('VENCIDA', perms.INVOICES_EDIT, False),
            ('ANULADA', perms.INVOICES_EDIT, True),
        ],
        'PARCIALMENTE_COBRADA': [
            ('COBRADA', perms.INVOICES_EDIT, False),
            ('VENCIDA', perms.INVOICES_EDIT, False),
        ],
        'VENCIDA': [
            ('PARCIALMENTE_COBRADA', perms.INVOICES_EDIT, False),
            ('COBRADA', perms.INVOICES_EDIT, False),
        ],
    },
)

CLIENT_PAYMENT_GRAPH = _graph(
    states=['PENDIENTE', 'CONFIRMADO', 'RECHAZADO', 'ANULADO'],
    final=['CONFIRMADO', 'RECHAZADO', 'ANULADO'],
    transitions={
        'PENDIENTE': [
            ('CONFIRMADO', perms.PAYMENTS_APPROVE, False),
            ('RECHAZADO', perms.PAYMENTS_APPROVE, True),
            ('ANULADO', perms.PAYMENTS_APPROVE, True),
        ],
    },
)

TASK_GRAPH = _graph(
    states=['new', 'approved', 'in_progress', 'completed', 'rejected', 'failed'],
    final=['completed', 'rejected', 'failed'],
    transitions={
        'new': [
            ('approved', perms.TASKS_APPROVE, False),
            ('rejected', perms.TASKS_APPROVE, True),
        ],
        'approved': [
            ('in_progress', perms.TASKS_EDIT, False),
        ],
        'in_progress': [
            ('completed', perms.TASKS_EDIT, False),
            ('failed', perms.TASKS_EDIT, True),
        ],
    },
)

GRAPHS = {
    DocumentType.QUOTE: QUOTE_GRAPH,
    DocumentType.SALE_ORDER: SALE_ORDER_GRAPH,
    DocumentType.DELIVERY: DELIVERY_GRAPH,
    DocumentType.INVOICE: INVOICE_GRAPH,
    DocumentType.CLIENT_PAYMENT: CLIENT_PAYMENT_GRAPH,
    DocumentType.TASK: TASK_GRAPH,
}

STATE_LABELS = {
    'BORRADOR': 'Borrador',
    'PENDIENTE_APROBACION': 'Pendiente de aprobación',
    'APROBADA': 'Aprobada',
    'ENVIADA': 'Enviada',
    'EN_NEGOCIACION': 'En negociación',
    'ACEPTADA': 'Aceptada',
    'CONVERTIDA': 'Convertida',
    'PERDIDA': 'Perdida',
    'VENCIDA': 'Vencida',
    'CANCELADA': 'Cancelada',
    'CONFIRMADA': 'Confirmada',
    'EN_PREPARACION': 'En preparación',
    'PARCIALMENTE_ENTREGADA': 'Parcialmente entregada',
    'ENTREGADA': 'Entregada',
    'PARCIALMENTE_FACTURADA': 'Parcialmente facturada',
    'FACTURADA': 'Facturada',
    'CERRADA': 'Cerrada',
    'PENDIENTE': 'Pendiente',
    'LISTA_PARA_DESPACHO': 'Lista para despacho',
    'EN_TRANSITO': 'En tránsito',
    'RETIRADA': 'Retirada por el cliente',
    'ENTREGA_FALLIDA': 'Entrega fallida',
    'EMITIDA': 'Emitida',
    'PARCIALMENTE_COBRADA': 'Parcialmente cobrada',
    'COBRADA': 'Cobrada',
    'ANULADA': 'Anulada',
    'CONFIRMADO': 'Confirmado',
    'RECHAZADO': 'Rechazado',
    'ANULADO': 'Anulado',
    'new': 'Nueva',
    'approved': 'Aprobada',
    'in_progress': 'En curso',
    'completed': 'Completada',
    'rejected': 'Rechazada',
    'failed': 'Fallida',
}


def get_graph(document_type) -> Optional[StateGraph]:
    return GRAPHS.get(document_type)


def states(document_type) -> List[str]:
    graph = get_graph(document_type)
    return list(graph.states) if graph else []


def initial_state(document_type) -> Optional[str]:
    graph = get_graph(document_type)
    return graph.initial if graph else None


def choices(document_type):
    """(value, label) pairs for a model field's choices"""
    return [(state, STATE_LABELS.get(state, state)) for state in states(document_type)]


def is_known_state(document_type, state) -> bool:
    graph = get_graph(document_type)
    return bool(graph) and state in graph.states


def is_final_state(document_type, state) -> bool:
    graph = get_graph(document_type)
    return bool(graph) and state in graph.final


def get_edge(document_type, from_state, to_state) -> Optional[Edge]:
    graph = get_graph(document_type)
    if graph is None:
        return None
    return graph.edge(from_state, to_state)


def is_valid_transition(document_type, from_state, to_state) -> bool:
    return get_edge(document_type, from_state, to_state) is not None


def available_transitions(document_type, from_state) -> List[str]:
    graph = get_graph(document_type)
    if graph is None:
        return []
    return list(graph.edges.get(from_state, {}).keys())


def requires_reason(document_type, from_state, to_state) -> bool:
    edge = get_edge(document_type, from_state, to_state)
    return bool(edge and edge.reason_required)


def required_permission(document_type, from_state, to_state) -> Optional[str]:
    edge = get_edge(document_type, from_state, to_state)
    return edge.permission if edge else None
