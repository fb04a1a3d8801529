from django.urls import re_path
from . import views

urlpatterns = [
    re_path(r'^register/?$', views.register_view, name='register'),
    re_path(r'^login/?$', views.login_view, name='login'),
    re_path(r'^logout/?$', views.logout_view, name='logout'),
    re_path(r'^verify-email/(?P<token>[^/]+)/?$', views.verify_email_view, name='verify_email'),
    re_path(r'^resend-verification/?$', views.resend_verification_view, name='resend_verification'),
    re_path(r'^forgot-password/?$', views.forgot_password_view, name='forgot_password'),
    re_path(r'^reset-password/(?P<token>[^/]+)/?$', views.reset_password_view, name='reset_password'),
    re_path(r'^update-password/?$', views.update_password_view, name='update_password'),
    re_path(r'^me/?$', views.me_view, name='me'),
    re_path(r'^refresh-token/?$', views.refresh_token_view, name='refresh_token'),
]
