from django.contrib.auth.password_validation import validate_password
from django.db.models import Q
from rest_framework import serializers

from culinary_api.exceptions import ConflictError
from .models import User
from .validators import username_validator


class UserSerializer(serializers.ModelSerializer):
    """Profil complet, réservé à l'utilisateur lui-même et aux administrateurs"""
    firstName = serializers.CharField(source='first_name', max_length=50, required=False, allow_blank=True)
    lastName = serializers.CharField(source='last_name', max_length=50, required=False, allow_blank=True)
    fullName = serializers.CharField(source='full_name', read_only=True)
    accountStatus = serializers.CharField(source='account_status', read_only=True)
    isEmailVerified = serializers.BooleanField(source='is_email_verified', read_only=True)
    phoneNumber = serializers.CharField(source='phone_number', max_length=20, required=False, allow_blank=True)
    profileImage = serializers.CharField(source='profile_image', max_length=500, required=False, allow_blank=True)
    lastLogin = serializers.DateTimeField(source='last_login', read_only=True)
    createdAt = serializers.DateTimeField(source='created_at', read_only=True)

    class Meta:
        model = User
        fields = (
            'id', 'username', 'email', 'firstName', 'lastName', 'fullName', 'role',
            'accountStatus', 'isEmailVerified', 'bio', 'phoneNumber', 'profileImage',
            'location', 'preferences', 'lastLogin', 'createdAt',
        )
        read_only_fields = ('id', 'username', 'email', 'role')

    def validate_preferences(self, value):
        if not isinstance(value, dict):
            raise serializers.ValidationError('Preferences must be an object.')
        visibility = value.get('privacy', {}).get('profileVisibility', 'public')
        if visibility not in ('public', 'private'):
            raise serializers.ValidationError('profileVisibility must be public or private.')
        return value

    def validate_location(self, value):
        if not isinstance(value, dict):
            raise serializers.ValidationError('Location must be an object.')
        return value

    def update(self, instance, validated_data):
        # Fusion des préférences plutôt que remplacement complet
        if 'preferences' in validated_data:
            merged = dict(instance.preferences or {})
            merged.update(validated_data.pop('preferences'))
            validated_data['preferences'] = merged
        return super().update(instance, validated_data)


class PublicProfileSerializer(serializers.ModelSerializer):
    firstName = serializers.CharField(source='first_name', read_only=True)
    lastName = serializers.CharField(source='last_name', read_only=True)
    profileImage = serializers.CharField(source='profile_image', read_only=True)
    createdAt = serializers.DateTimeField(source='created_at', read_only=True)

    class Meta:
        model = User
        fields = ('id', 'username', 'firstName', 'lastName', 'role', 'bio', 'profileImage', 'location', 'createdAt')


class UserLightSerializer(serializers.ModelSerializer):
    """Serializer léger pour l'auteur d'une recette"""
    firstName = serializers.CharField(source='first_name', read_only=True)
    lastName = serializers.CharField(source='last_name', read_only=True)
    profileImage = serializers.CharField(source='profile_image', read_only=True)

    class Meta:
        model = User
        fields = ('id', 'username', 'firstName', 'lastName', 'profileImage')


class UserRegistrationSerializer(serializers.Serializer):
    username = serializers.CharField(min_length=3, max_length=30, validators=[username_validator])
    email = serializers.EmailField()
    password = serializers.CharField(write_only=True)
    passwordConfirm = serializers.CharField(write_only=True, required=False)
    firstName = serializers.CharField(max_length=50, required=False, allow_blank=True)
    lastName = serializers.CharField(max_length=50, required=False, allow_blank=True)

    def validate_email(self, value):
        return value.strip().lower()

    def validate(self, attrs):
        if 'passwordConfirm' in attrs and attrs['passwordConfirm'] != attrs['password']:
            raise serializers.ValidationError({'passwordConfirm': 'Passwords do not match.'})
        validate_password(attrs['password'])
        if User.objects.filter(Q(email__iexact=attrs['email']) | Q(username__iexact=attrs['username'])).exists():
            raise ConflictError('User with this email or username already exists')
        return attrs

    def create(self, validated_data):
        user = User(
            username=validated_data['username'],
            email=validated_data['email'],
            first_name=validated_data.get('firstName', ''),
            last_name=validated_data.get('lastName', ''),
            account_status=User.STATUS_PENDING,
        )
        user.set_password(validated_data['password'])
        # Jeton en clair, à transmettre par email uniquement
        self.verification_token = user.create_email_verification_token()
        user.save()
        return user


class LoginSerializer(serializers.Serializer):
    email = serializers.EmailField()
    password = serializers.CharField(write_only=True)

    def validate_email(self, value):
        return value.strip().lower()


class EmailSerializer(serializers.Serializer):
    email = serializers.EmailField()

    def validate_email(self, value):
        return value.strip().lower()


class PasswordResetSerializer(serializers.Serializer):
    password = serializers.CharField(write_only=True)
    passwordConfirm = serializers.CharField(write_only=True)

    def validate(self, attrs):
        if attrs['password'] != attrs['passwordConfirm']:
            raise serializers.ValidationError({'passwordConfirm': 'Passwords do not match.'})
        validate_password(attrs['password'], self.context.get('user'))
        return attrs


class PasswordUpdateSerializer(PasswordResetSerializer):
    passwordCurrent = serializers.CharField(write_only=True)


class RoleUpdateSerializer(serializers.Serializer):
    role = serializers.ChoiceField(choices=User.ROLE_CHOICES)


class AccountStatusSerializer(serializers.Serializer):
    accountStatus = serializers.ChoiceField(choices=User.STATUS_CHOICES)
