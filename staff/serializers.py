from rest_framework import serializers
from django.contrib.auth.models import User
from django.contrib.auth import authenticate
from django.db import transaction
from .models import Librarian


class UserSerializer(serializers.ModelSerializer):
    """Basic User serializer"""
    class Meta:
        model = User
        fields = ['id', 'username', 'email', 'first_name', 'last_name']
        read_only_fields = ['id']


class LibrarianSerializer(serializers.ModelSerializer):
    """Serializer for Librarian profiles"""
    username = serializers.CharField(source='user.username', read_only=True)
    email = serializers.EmailField(source='user.email', read_only=True)

    class Meta:
        model = Librarian
        fields = [
            'id', 'user', 'username', 'email', 'name', 'role',
            'employee_id', 'phone', 'is_active', 'created_at'
        ]
        read_only_fields = ['user', 'created_at']


class LibrarianCreateSerializer(serializers.ModelSerializer):
    """Serializer for adding a member of staff (admin only)"""
    username = serializers.CharField(max_length=150, write_only=True)
    email = serializers.EmailField(required=False, allow_blank=True, write_only=True)
    password = serializers.CharField(write_only=True, min_length=8, style={'input_type': 'password'})

    class Meta:
        model = Librarian
        fields = ['id', 'username', 'email', 'password', 'name', 'role', 'employee_id', 'phone']

    def validate_username(self, value):
        """Check if username already exists"""
        if User.objects.filter(username=value).exists():
            raise serializers.ValidationError('Username already exists.')
        return value

    def validate_email(self, value):
        """Check if email already exists"""
        if value and User.objects.filter(email=value).exists():
            raise serializers.ValidationError('Email address already in use.')
        return value

    def create(self, validated_data):
        """Create the login account and its librarian profile together"""
        username = validated_data.pop('username')
        email = validated_data.pop('email', '')
        password = validated_data.pop('password')

        with transaction.atomic():
            user = User.objects.create_user(username=username, email=email, password=password)
            return Librarian.objects.create(user=user, **validated_data)

    def to_representation(self, instance):
        return LibrarianSerializer(instance, context=self.context).data


class FirstAdminSerializer(LibrarianCreateSerializer):
    """Serializer for the very first account, which is always an administrator"""

    class Meta(LibrarianCreateSerializer.Meta):
        fields = ['id', 'username', 'email', 'password', 'name', 'employee_id', 'phone']

    def create(self, validated_data):
        validated_data['role'] = Librarian.ROLE_ADMIN
        return super().create(validated_data)


class LoginSerializer(serializers.Serializer):
    """Serializer for staff login"""
    username = serializers.CharField()
    password = serializers.CharField(write_only=True, style={'input_type': 'password'})

    def validate(self, data):
        """Validate credentials"""
        username = data.get('username')
        password = data.get('password')

        if username and password:
            user = authenticate(username=username, password=password)
            if not user:
                raise serializers.ValidationError('Invalid username or password.')
            if not user.is_active:
                raise serializers.ValidationError('User account is disabled.')
            data['user'] = user
        else:
            raise serializers.ValidationError('Must include username and password.')

        return data
