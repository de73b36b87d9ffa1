import django_filters

from modules.orders.models import Order


class OrderFilter(django_filters.FilterSet):
    status = django_filters.CharFilter(field_name="status", lookup_expr="iexact")
    transaction_type = django_filters.CharFilter(field_name="transaction_type")
    start_date = django_filters.DateFilter(field_name="created_at", lookup_expr="date__gte")
    end_date = django_filters.DateFilter(field_name="created_at", lookup_expr="date__lte")
    min_amount = django_filters.NumberFilter(field_name="actual_amount", lookup_expr="gte")
    max_amount = django_filters.NumberFilter(field_name="actual_amount", lookup_expr="lte")

    class Meta:
        model = Order
        fields = [
            "status",
            "transaction_type",
            "start_date",
            "end_date",
            "min_amount",
            "max_amount",
        ]
