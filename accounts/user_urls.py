from django.urls import path, re_path
from . import views

urlpatterns = [
    re_path(r'^profile/?$', views.profile_view, name='user_profile'),
    re_path(r'^profile/image/?$', views.profile_image_view, name='user_profile_image'),
    re_path(r'^bookmarks/?$', views.bookmarks_view, name='user_bookmarks'),
    re_path(r'^recipes/?$', views.my_recipes_view, name='user_my_recipes'),
    re_path(r'^activity/?$', views.activity_view, name='user_activity'),
    re_path(r'^statistics/?$', views.user_statistics_view, name='user_statistics'),
    path('', views.users_list_view, name='user_list'),
    re_path(r'^(?P<user_id>\d+)/profile/?$', views.public_profile_view, name='user_public_profile'),
    re_path(r'^(?P<user_id>\d+)/recipes/?$', views.user_recipes_view, name='user_recipes'),
    re_path(r'^(?P<user_id>\d+)/role/?$', views.user_role_view, name='user_role'),
    re_path(r'^(?P<user_id>\d+)/status/?$', views.user_status_view, name='user_status'),
    re_path(r'^(?P<user_id>\d+)/?$', views.user_delete_view, name='user_delete'),
]
