from django.urls import path

from . import views

urlpatterns = [
    path('settings/', views.SystemSettingView.as_view(), name='api-settings'),
]
