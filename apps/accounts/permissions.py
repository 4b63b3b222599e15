"""
Permission catalog for the sales and agenda modules.

Permissions are plain strings (``modulo.recurso.accion``) granted per
membership role. Transition rules in the state registry name the permission
they require; the RequestContext carries the resolved set.
"""

QUOTES_EDIT = 'ventas.cotizaciones.edit'
QUOTES_APPROVE = 'ventas.cotizaciones.aprobar'
ORDERS_EDIT = 'ventas.ordenes.edit'
DELIVERIES_EDIT = 'ventas.entregas.edit'
INVOICES_EDIT = 'ventas.facturas.edit'
PAYMENTS_APPROVE = 'ventas.pagos.aprobar'
CLIENTS_BLOCK = 'ventas.clientes.bloquear'
TASKS_EDIT = 'agenda.tareas.edit'
TASKS_APPROVE = 'agenda.tareas.aprobar'

ALL_PERMISSIONS = frozenset({
    QUOTES_EDIT,
    QUOTES_APPROVE,
    ORDERS_EDIT,
    DELIVERIES_EDIT,
    INVOICES_EDIT,
    PAYMENTS_APPROVE,
    CLIENTS_BLOCK,
    TASKS_EDIT,
    TASKS_APPROVE,
})

ROLE_PERMISSIONS = {
    'OWNER': ALL_PERMISSIONS,
    'ADMIN': ALL_PERMISSIONS,
    'GERENTE': ALL_PERMISSIONS,
    'SUPERVISOR': frozenset({
        QUOTES_EDIT, QUOTES_APPROVE, ORDERS_EDIT, DELIVERIES_EDIT,
        INVOICES_EDIT, PAYMENTS_APPROVE, TASKS_EDIT, TASKS_APPROVE,
    }),
    'VENDEDOR': frozenset({QUOTES_EDIT, ORDERS_EDIT, TASKS_EDIT}),
    'OPERATOR': frozenset({DELIVERIES_EDIT, TASKS_EDIT}),
}

# Approval hierarchy: a member may sign an approval level whose required
# role ranks at or below their own.
ROLE_RANK = {
    'OPERATOR': 0,
    'VENDEDOR': 1,
    'SUPERVISOR': 2,
    'GERENTE': 3,
    'ADMIN': 4,
    'OWNER': 5,
}


def permissions_for_role(role):
    return ROLE_PERMISSIONS.get(role, frozenset())


def role_satisfies(role, required_role):
    if role not in ROLE_RANK or required_role not in ROLE_RANK:
        return False
    return ROLE_RANK[role] >= ROLE_RANK[required_role]

ADMIN_ROLES = frozenset({'OWNER', 'ADMIN'})
