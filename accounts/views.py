import logging

from django.contrib.auth import get_user_model
from django.db import transaction
from django.db.models import Avg, Count, Q, Sum
from django.utils import timezone
from rest_framework import status
from rest_framework.decorators import api_view, parser_classes, permission_classes, throttle_classes
from rest_framework.parsers import FormParser, MultiPartParser
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response

from culinary_api.exceptions import (
    AccountLocked,
    EmailDeliveryError,
    NotAuthenticatedError,
    NotFoundError,
    PermissionDeniedError,
    ValidationFailed,
)
from culinary_api.throttling import ApiRateThrottle, AuthRateThrottle
from culinary_api.uploads import PROFILE_IMAGE, store_files
from recipes.models import Recipe
from recipes.pagination import EnvelopePagination
from recipes.serializers import RecipeListSerializer
from .authentication import clear_token_cookie, issue_token, set_token_cookie
from .mailer import Mailer
from .models import hash_token
from .permissions import IsAdmin, IsAdminOrModerator
from .serializers import (
    AccountStatusSerializer,
    EmailSerializer,
    LoginSerializer,
    PasswordResetSerializer,
    PasswordUpdateSerializer,
    PublicProfileSerializer,
    RoleUpdateSerializer,
    UserRegistrationSerializer,
    UserSerializer,
)
from .tasks import send_verification_email, send_welcome_email

logger = logging.getLogger(__name__)

User = get_user_model()

AUTH_THROTTLES = [AuthRateThrottle, ApiRateThrottle]
PASSWORD_FIELDS = ('password', 'passwordConfirm', 'passwordCurrent')


def token_response(user, message=None, status_code=status.HTTP_200_OK):
    """Réponse standard de connexion : jeton dans le corps et dans le cookie"""
    token = issue_token(user)
    body = {'success': True, 'token': token, 'data': {'user': UserSerializer(user).data}}
    if message:
        body['message'] = message
    return set_token_cookie(Response(body, status=status_code), token)


def paginated_recipes(request, queryset):
    paginator = EnvelopePagination(page_size=12, max_page_size=50, data_key='recipes')
    page = paginator.paginate_queryset(queryset, request)
    return paginator.get_paginated_response(RecipeListSerializer(page, many=True).data)


def recipe_list_queryset():
    return Recipe.objects.select_related('author', 'category').prefetch_related(
        'dietary_restrictions', 'likes', 'bookmarks',
    )


def archive_recipes_of(user):
    """Les recettes d'un compte supprimé deviennent privées et archivées"""
    return Recipe.objects.filter(author=user).update(
        status=Recipe.STATUS_ARCHIVED, visibility=Recipe.VISIBILITY_PRIVATE,
    )


def get_user_or_404(user_id):
    user = User.objects.filter(pk=user_id).first()
    if user is None:
        raise NotFoundError('User not found')
    return user


# Authentification

@api_view(['POST'])
@permission_classes([AllowAny])
@throttle_classes(AUTH_THROTTLES)
def register_view(request):
    """Inscription : compte en attente jusqu'à la vérification de l'email"""
    serializer = UserRegistrationSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    user = serializer.save()

    try:
        send_welcome_email.delay(user.id, serializer.verification_token)
    except Exception:
        # L'inscription reste valide, l'email pourra être renvoyé
        logger.exception("[Register] Could not queue welcome email for user %s", user.id)

    logger.info("[Register] New user %s (%s)", user.id, user.username)
    return Response({
        'success': True,
        'message': 'Registration successful! Please check your email to verify your account.',
        'data': {'user': UserSerializer(user).data},
    }, status=status.HTTP_201_CREATED)


@api_view(['POST'])
@permission_classes([AllowAny])
@throttle_classes(AUTH_THROTTLES)
def login_view(request):
    serializer = LoginSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    email = serializer.validated_data['email']

    user = User.objects.filter(email__iexact=email).first()
    if user is not None and user.is_locked:
        logger.warning("[Login] Locked account %s", user.id)
        raise AccountLocked()
    if user is None or not user.check_password(serializer.validated_data['password']):
        if user is not None:
            user.register_failed_login()
        raise NotAuthenticatedError('Invalid email or password', code='invalid_credentials')
    if not user.is_email_verified:
        raise NotAuthenticatedError('Please verify your email address before logging in', code='email_not_verified')
    if user.account_status != User.STATUS_ACTIVE:
        raise PermissionDeniedError('Your account is not active. Please contact support.', code='account_inactive')

    user.reset_login_attempts()
    logger.info("[Login] User %s logged in", user.id)
    return token_response(user)


@api_view(['POST', 'GET'])
@permission_classes([AllowAny])
def logout_view(request):
    response = Response({'success': True, 'message': 'Logged out successfully'})
    return clear_token_cookie(response)


@api_view(['GET'])
@permission_classes([AllowAny])
def verify_email_view(request, token):
    user = User.objects.filter(
        email_verification_token=hash_token(token),
        email_verification_expires__gt=timezone.now(),
    ).first() if token else None
    if user is None:
        raise ValidationFailed('Email verification token is invalid or has expired', code='invalid_token')

    user.is_email_verified = True
    user.account_status = User.STATUS_ACTIVE
    user.email_verification_token = ''
    user.email_verification_expires = None
    user.save(update_fields=[
        'is_email_verified', 'account_status', 'email_verification_token',
        'email_verification_expires', 'updated_at',
    ])
    logger.info("[VerifyEmail] User %s verified", user.id)
    return Response({
        'success': True,
        'message': 'Email verified successfully! Your account is now active.',
        'data': {'user': {
            'id': user.id,
            'email': user.email,
            'isEmailVerified': user.is_email_verified,
            'accountStatus': user.account_status,
        }},
    })


@api_view(['POST'])
@permission_classes([AllowAny])
@throttle_classes(AUTH_THROTTLES)
def resend_verification_view(request):
    serializer = EmailSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    user = User.objects.filter(email__iexact=serializer.validated_data['email']).first()
    if user is None:
        raise NotFoundError('No user found with that email address')
    if user.is_email_verified:
        raise ValidationFailed('Email is already verified', code='already_verified')

    token = user.create_email_verification_token()
    user.save(update_fields=['email_verification_token', 'email_verification_expires', 'updated_at'])
    try:
        send_verification_email.delay(user.id, token)
    except Exception:
        logger.exception("[ResendVerification] Could not queue email for user %s", user.id)
        raise EmailDeliveryError()
    return Response({'success': True, 'message': 'Verification email sent successfully'})


@api_view(['POST'])
@permission_classes([AllowAny])
@throttle_classes(AUTH_THROTTLES)
def forgot_password_view(request):
    serializer = EmailSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    user = User.objects.filter(email__iexact=serializer.validated_data['email']).first()
    if user is None:
        raise NotFoundError('There is no user with that email address')

    raw_token = user.create_password_reset_token()
    user.save(update_fields=['password_reset_token', 'password_reset_expires'])
    try:
        Mailer().send_password_reset(user, raw_token)
    except Exception as exc:
        # Jeton annulé si l'email n'a pas pu partir
        user.clear_password_reset_token()
        user.save(update_fields=['password_reset_token', 'password_reset_expires'])
        logger.error("[ForgotPassword] Sending reset email to user %s failed: %s", user.id, exc)
        raise EmailDeliveryError()

    logger.info("[ForgotPassword] Reset token issued for user %s", user.id)
    return Response({'success': True, 'message': 'Password reset instructions sent to your email'})


@api_view(['PATCH'])
@permission_classes([AllowAny])
@throttle_classes(AUTH_THROTTLES)
def reset_password_view(request, token):
    user = User.objects.filter(
        password_reset_token=hash_token(token),
        password_reset_expires__gt=timezone.now(),
    ).first()
    if user is None:
        raise ValidationFailed('Token is invalid or has expired', code='invalid_token')

    serializer = PasswordResetSerializer(data=request.data, context={'user': user})
    serializer.is_valid(raise_exception=True)
    user.set_new_password(serializer.validated_data['password'])
    user.clear_password_reset_token()
    user.save()
    logger.info("[ResetPassword] Password reset for user %s", user.id)
    return token_response(user, 'Password reset successful')


@api_view(['PATCH'])
@permission_classes([IsAuthenticated])
def update_password_view(request):
    user = request.user
    serializer = PasswordUpdateSerializer(data=request.data, context={'user': user})
    serializer.is_valid(raise_exception=True)
    if not user.check_password(serializer.validated_data['passwordCurrent']):
        raise NotAuthenticatedError('Your current password is wrong', code='wrong_password')

    user.set_new_password(serializer.validated_data['password'])
    user.save()
    logger.info("[UpdatePassword] Password updated for user %s", user.id)
    return token_response(user, 'Password updated successfully')


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def me_view(request):
    return Response({'success': True, 'data': {'user': UserSerializer(request.user).data}})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def refresh_token_view(request):
    return token_response(request.user, 'Token refreshed successfully')


# Profil de l'utilisateur connecté

@api_view(['GET', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def profile_view(request):
    user = request.user
    if request.method == 'GET':
        return Response({'success': True, 'data': {'user': UserSerializer(user).data}})

    if request.method == 'DELETE':
        # Suppression logique : le compte est désactivé, ses recettes archivées
        with transaction.atomic():
            archived = archive_recipes_of(user)
            user.anonymize()
        logger.info("[Profile] User %s deactivated their account (%d recipes archived)", user.id, archived)
        return clear_token_cookie(Response(status=status.HTTP_204_NO_CONTENT))

    if any(field in request.data for field in PASSWORD_FIELDS):
        raise ValidationFailed(
            'This route is not for password updates. Please use /update-password.',
            code='password_update_not_allowed',
        )
    serializer = UserSerializer(user, data=request.data, partial=True)
    serializer.is_valid(raise_exception=True)
    serializer.save()
    return Response({
        'success': True,
        'message': 'Profile updated successfully',
        'data': {'user': serializer.data},
    })


@api_view(['POST', 'PATCH'])
@permission_classes([IsAuthenticated])
@parser_classes([MultiPartParser, FormParser])
def profile_image_view(request):
    user = request.user
    urls = store_files(request.FILES.getlist('profileImage'), PROFILE_IMAGE, 'profileImage')
    user.profile_image = urls[0]
    user.save(update_fields=['profile_image', 'updated_at'])
    return Response({'success': True, 'data': {'user': UserSerializer(user).data}})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def bookmarks_view(request):
    queryset = recipe_list_queryset().filter(
        bookmarks=request.user,
        status=Recipe.STATUS_PUBLISHED,
        visibility__in=[Recipe.VISIBILITY_PUBLIC, Recipe.VISIBILITY_FRIENDS_ONLY],
    ).order_by('-created_at', '-id')
    return paginated_recipes(request, queryset)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def my_recipes_view(request):
    queryset = recipe_list_queryset().filter(author=request.user).order_by('-created_at', '-id')
    return paginated_recipes(request, queryset)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def activity_view(request):
    recipes = Recipe.objects.filter(author=request.user)
    stats = recipes.aggregate(
        totalRecipes=Count('id', distinct=True),
        publishedRecipes=Count('id', filter=Q(status=Recipe.STATUS_PUBLISHED), distinct=True),
        totalViews=Sum('views'),
        averageRating=Avg('average_rating'),
    )
    stats['totalViews'] = stats['totalViews'] or 0
    stats['averageRating'] = round(stats['averageRating'] or 0, 1)
    # Comptés séparément pour éviter la multiplication des jointures
    stats['totalLikes'] = Recipe.likes.through.objects.filter(recipe__author=request.user).count()
    stats['totalBookmarks'] = Recipe.bookmarks.through.objects.filter(recipe__author=request.user).count()

    recent = recipes.select_related('category').order_by('-created_at')[:5]
    return Response({
        'success': True,
        'data': {'activity': {
            'stats': stats,
            'recentRecipes': [
                {
                    'id': recipe.id,
                    'title': recipe.title,
                    'status': recipe.status,
                    'views': recipe.views,
                    'averageRating': recipe.average_rating,
                    'category': {'id': recipe.category_id, 'name': recipe.category.name},
                    'createdAt': recipe.created_at,
                }
                for recipe in recent
            ],
        }},
    })


# Profils publics

@api_view(['GET'])
@permission_classes([IsAuthenticated])
def public_profile_view(request, user_id):
    user = get_user_or_404(user_id)
    if user.profile_visibility == 'private' and not (request.user.id == user.id or request.user.role == 'admin'):
        raise PermissionDeniedError('This profile is private')

    data = PublicProfileSerializer(user).data
    data['stats'] = {
        'publicRecipes': Recipe.objects.filter(
            author=user, status=Recipe.STATUS_PUBLISHED, visibility=Recipe.VISIBILITY_PUBLIC,
        ).count(),
    }
    return Response({'success': True, 'data': {'user': data}})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def user_recipes_view(request, user_id):
    user = get_user_or_404(user_id)
    queryset = recipe_list_queryset().filter(author=user)
    if not (request.user.id == user.id or request.user.role == 'admin'):
        queryset = queryset.filter(status=Recipe.STATUS_PUBLISHED, visibility=Recipe.VISIBILITY_PUBLIC)
    return paginated_recipes(request, queryset.order_by('-created_at', '-id'))


# Administration

@api_view(['GET'])
@permission_classes([IsAdminOrModerator])
def users_list_view(request):
    queryset = User.objects.all()
    params = request.query_params
    if params.get('role'):
        queryset = queryset.filter(role=params['role'])
    if params.get('accountStatus'):
        queryset = queryset.filter(account_status=params['accountStatus'])
    search = (params.get('search') or '').strip()
    if search:
        queryset = queryset.filter(
            Q(first_name__icontains=search)
            | Q(last_name__icontains=search)
            | Q(username__icontains=search)
            | Q(email__icontains=search)
        )

    paginator = EnvelopePagination(page_size=20, max_page_size=100, data_key='users')
    page = paginator.paginate_queryset(queryset.order_by('-created_at', '-id'), request)
    return paginator.get_paginated_response(UserSerializer(page, many=True).data)


@api_view(['GET'])
@permission_classes([IsAdminOrModerator])
def user_statistics_view(request):
    overview = User.objects.aggregate(
        totalUsers=Count('id'),
        activeUsers=Count('id', filter=Q(account_status=User.STATUS_ACTIVE)),
        pendingUsers=Count('id', filter=Q(account_status=User.STATUS_PENDING)),
        suspendedUsers=Count('id', filter=Q(account_status=User.STATUS_SUSPENDED)),
        verifiedUsers=Count('id', filter=Q(is_email_verified=True)),
    )
    roles = {
        row['role']: row['count']
        for row in User.objects.order_by().values('role').annotate(count=Count('id'))
    }
    recent = User.objects.order_by('-created_at')[:10]
    return Response({
        'success': True,
        'data': {
            'overview': overview,
            'roleDistribution': roles,
            'recentUsers': UserSerializer(recent, many=True).data,
        },
    })


@api_view(['PATCH'])
@permission_classes([IsAdmin])
def user_role_view(request, user_id):
    if int(user_id) == request.user.id:
        raise ValidationFailed('You cannot change your own role', code='self_role_change')
    user = get_user_or_404(user_id)
    serializer = RoleUpdateSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    user.role = serializer.validated_data['role']
    user.save(update_fields=['role', 'updated_at'])
    logger.info("[Admin] User %s set role of user %s to %s", request.user.id, user.id, user.role)
    return Response({
        'success': True,
        'message': 'User role updated successfully',
        'data': {'user': UserSerializer(user).data},
    })


@api_view(['PATCH'])
@permission_classes([IsAdmin])
def user_status_view(request, user_id):
    if int(user_id) == request.user.id:
        raise ValidationFailed('You cannot change your own account status', code='self_status_change')
    user = get_user_or_404(user_id)
    serializer = AccountStatusSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    user.account_status = serializer.validated_data['accountStatus']
    user.save(update_fields=['account_status', 'updated_at'])
    logger.info("[Admin] User %s set status of user %s to %s", request.user.id, user.id, user.account_status)
    return Response({
        'success': True,
        'message': 'User status updated successfully',
        'data': {'user': UserSerializer(user).data},
    })


@api_view(['DELETE'])
@permission_classes([IsAdmin])
def user_delete_view(request, user_id):
    if int(user_id) == request.user.id:
        raise ValidationFailed('You cannot delete your own account', code='self_delete')
    user = get_user_or_404(user_id)
    with transaction.atomic():
        archived = archive_recipes_of(user)
        user.anonymize()
    logger.info("[Admin] User %s deleted user %s (%d recipes archived)", request.user.id, user.id, archived)
    return Response(status=status.HTTP_204_NO_CONTENT)
