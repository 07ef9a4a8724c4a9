from django.urls import path
from . import views

urlpatterns = [
    # =======================
    # 🔹 Dashboard
    # =======================
    path('dashboard/', views.dashboard, name='dashboard'),

    # =======================
    # 🔹 Rooms
    # =======================
    path('rooms/', views.room_list, name='room_list'),
    path('rooms/<int:pk>/', views.room_detail, name='room_detail'),

    # =======================
    # 🔹 Guests
    # =======================
    path('guests/', views.guest_list, name='guest_list'),
    path('guests/<int:pk>/', views.guest_detail, name='guest_detail'),

    # =======================
    # 🔹 Bookings
    # =======================
    path('bookings/', views.booking_list, name='booking_list'),
    path('bookings/estimate/', views.booking_estimate, name='booking_estimate'),
    path('bookings/export/csv/', views.export_bookings_csv, name='export_bookings_csv'),
    path('bookings/export/xlsx/', views.export_bookings_excel, name='export_bookings_excel'),
    path('bookings/<int:pk>/', views.booking_detail, name='booking_detail'),
    path('bookings/<int:pk>/status/', views.booking_status, name='booking_status'),
    path('bookings/<int:pk>/payments/', views.booking_payment, name='booking_payment'),
    path('bookings/<int:pk>/checkout-report/', views.checkout_report, name='checkout_report'),

    # =======================
    # 🔹 Laundry
    # =======================
    path('laundry/prices/', views.laundry_prices, name='laundry_prices'),
    path('laundry/quote/', views.laundry_quote, name='laundry_quote'),
    path('laundry/orders/', views.laundry_order_list, name='laundry_order_list'),
    path('laundry/orders/<int:pk>/', views.laundry_order_detail, name='laundry_order_detail'),
    path('laundry/orders/<int:pk>/status/', views.laundry_order_status, name='laundry_order_status'),
    path('laundry/orders/<int:pk>/payments/', views.laundry_order_payment, name='laundry_order_payment'),

    # =======================
    # 🔹 Restaurant
    # =======================
    path('restaurant/menu/', views.menu_item_list, name='menu_item_list'),
    path('restaurant/menu/<int:pk>/', views.menu_item_detail, name='menu_item_detail'),
    path('restaurant/quote/', views.restaurant_quote, name='restaurant_quote'),
    path('restaurant/orders/', views.restaurant_order_list, name='restaurant_order_list'),
    path('restaurant/orders/checkout/cash/', views.restaurant_checkout_cash, name='restaurant_checkout_cash'),
    path('restaurant/orders/checkout/room-charge/', views.restaurant_checkout_room_charge,
         name='restaurant_checkout_room_charge'),
    path('restaurant/orders/<int:pk>/', views.restaurant_order_detail, name='restaurant_order_detail'),
    path('restaurant/orders/<int:pk>/status/', views.restaurant_order_status, name='restaurant_order_status'),
    path('restaurant/orders/<int:pk>/payments/', views.restaurant_order_payment, name='restaurant_order_payment'),

    # =======================
    # 🔹 Events
    # =======================
    path('events/', views.event_list, name='event_list'),
    path('events/halls/', views.event_hall_list, name='event_hall_list'),
    path('events/estimate/', views.event_estimate, name='event_estimate'),
    path('events/<int:pk>/status/', views.event_status, name='event_status'),
    path('events/<int:pk>/payments/', views.event_payment, name='event_payment'),

    # =======================
    # 🔹 Gym & Pool
    # =======================
    path('memberships/', views.membership_list, name='membership_list'),
    path('memberships/plans/', views.membership_plan_list, name='membership_plan_list'),

    # =======================
    # 🔹 Employees
    # =======================
    path('employees/', views.employee_list, name='employee_list'),
    path('employees/roles/', views.role_list, name='role_list'),
    path('employees/roles/<str:role>/permissions/', views.role_permissions, name='role_permissions'),

    # =======================
    # 🔹 Reports
    # =======================
    path('reports/revenue/', views.revenue_report, name='revenue_report'),
    path('reports/anomalies/', views.payment_anomalies, name='payment_anomalies'),
]
