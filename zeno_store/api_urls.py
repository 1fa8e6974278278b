from django.urls import include, path
from rest_framework.routers import DefaultRouter
from rest_framework_simplejwt.views import (
    TokenObtainPairView,
    TokenRefreshView,
)

from apps.accounts.api_views import (
    AcceptInviteView,
    CustomerRegisterView,
    InviteViewSet,
    MemberViewSet,
    MeView,
    SwitchCompanyView,
)
from apps.core.api_views import (
    AuditLogViewSet,
    CatalogBannerViewSet,
    CatalogSlideViewSet,
    SettingDetailView,
    SettingsView,
)
from apps.credits.api_views import CreditPaymentViewSet, CustomerCreditViewSet
from apps.inventory.api_views import StockMovementViewSet
from apps.orders.api_views import CouponViewSet, OrderViewSet, PaymentTypeViewSet, PdvOrderView
from apps.products.api_views import BrandViewSet, CategoryViewSet, ProductViewSet
from apps.purchases.api_views import (
    PayablePaymentViewSet,
    PayableViewSet,
    PaymentTermViewSet,
    PurchaseOrderViewSet,
    SupplierViewSet,
)
from apps.reports.api_views import DashboardView, OrdersCsvView, SalesReportView
from apps.storefront.api_views import (
    CartItemDetailView,
    CartItemsView,
    CartView,
    CheckoutView,
    ShippingOptionsView,
    StoreBannersView,
    StoreCategoriesView,
    StoreInfoView,
    StoreProductDetailView,
    StoreProductListView,
    StoreSlidesView,
)
from apps.tenants.api_views import (
    BillingUpgradeView,
    BillingView,
    CompanyView,
    SignupView,
    SuperAdminCompanyViewSet,
    SuperAdminMetricsView,
)

router = DefaultRouter()
router.register(r'products', ProductViewSet, basename='api-product')
router.register(r'categories', CategoryViewSet, basename='api-category')
router.register(r'brands', BrandViewSet, basename='api-brand')
router.register(r'movements', StockMovementViewSet, basename='api-movement')
router.register(r'orders', OrderViewSet, basename='api-order')
router.register(r'payment-types', PaymentTypeViewSet, basename='api-payment-type')
router.register(r'coupons', CouponViewSet, basename='api-coupon')
router.register(r'credits', CustomerCreditViewSet, basename='api-credit')
router.register(r'credit-payments', CreditPaymentViewSet, basename='api-credit-payment')
router.register(r'suppliers', SupplierViewSet, basename='api-supplier')
router.register(r'payment-terms', PaymentTermViewSet, basename='api-payment-term')
router.register(r'purchases', PurchaseOrderViewSet, basename='api-purchase')
router.register(r'payables', PayableViewSet, basename='api-payable')
router.register(r'payable-payments', PayablePaymentViewSet, basename='api-payable-payment')
router.register(r'users', MemberViewSet, basename='api-user')
router.register(r'invites', InviteViewSet, basename='api-invite')
router.register(r'catalog/slides', CatalogSlideViewSet, basename='api-slide')
router.register(r'catalog/banners', CatalogBannerViewSet, basename='api-banner')
router.register(r'audit-log', AuditLogViewSet, basename='api-audit-log')
router.register(r'superadmin/companies', SuperAdminCompanyViewSet, basename='api-superadmin-company')

public_urlpatterns = [
    path('info/', StoreInfoView.as_view(), name='public-info'),
    path('register/', CustomerRegisterView.as_view(), name='public-register'),
    path('categories/', StoreCategoriesView.as_view(), name='public-categories'),
    path('products/', StoreProductListView.as_view(), name='public-products'),
    path('products/<int:pk>/', StoreProductDetailView.as_view(), name='public-product-detail'),
    path('slides/', StoreSlidesView.as_view(), name='public-slides'),
    path('banners/', StoreBannersView.as_view(), name='public-banners'),
    path('cart/', CartView.as_view(), name='public-cart'),
    path('cart/items/', CartItemsView.as_view(), name='public-cart-items'),
    path('cart/items/<int:product_id>/', CartItemDetailView.as_view(), name='public-cart-item'),
    path('checkout/shipping-options/', ShippingOptionsView.as_view(), name='public-shipping-options'),
    path('checkout/', CheckoutView.as_view(), name='public-checkout'),
]

urlpatterns = [
    # Auth
    path('auth/token/', TokenObtainPairView.as_view(), name='token_obtain_pair'),
    path('auth/token/refresh/', TokenRefreshView.as_view(), name='token_refresh'),
    path('auth/signup/', SignupView.as_view(), name='api-signup'),
    path('auth/me/', MeView.as_view(), name='api-me'),
    path('auth/switch-company/', SwitchCompanyView.as_view(), name='api-switch-company'),
    path('invites/<str:token>/accept/', AcceptInviteView.as_view(), name='api-invite-accept'),

    # Company & billing
    path('company/', CompanyView.as_view(), name='api-company'),
    path('billing/', BillingView.as_view(), name='api-billing'),
    path('billing/upgrade/<int:plan_id>/', BillingUpgradeView.as_view(), name='api-billing-upgrade'),
    path('superadmin/metrics/', SuperAdminMetricsView.as_view(), name='api-superadmin-metrics'),

    # Point of sale
    path('pdv/orders/', PdvOrderView.as_view(), name='api-pdv-order'),

    # Store settings
    path('settings/', SettingsView.as_view(), name='api-settings'),
    path('settings/<str:key>/', SettingDetailView.as_view(), name='api-setting-detail'),

    # Reports
    path('reports/dashboard/', DashboardView.as_view(), name='api-report-dashboard'),
    path('reports/sales/', SalesReportView.as_view(), name='api-report-sales'),
    path('reports/orders.csv', OrdersCsvView.as_view(), name='api-report-orders-csv'),

    # Public storefront
    path('public/<slug:slug>/', include(public_urlpatterns)),

    # Generic Router
    path('', include(router.urls)),
]
