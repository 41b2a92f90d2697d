# Services package.
#
# Each module exposes plain async functions holding the business rules
# for one concern:
#
#   article_service   — list/detail/create/edit/delete for Article,
#                       owner-or-admin checks, view counting
#   tag_service       — tag parsing and reconciliation
#   category_service  — ordered category list (cache-aside) and creation
#
# All service functions accept an AsyncSession as their first argument
# so that the router layer controls the transaction boundary via the
# ``get_db`` dependency.
