from django.contrib.auth.password_validation import validate_password
from django.db import transaction
from django.utils.text import slugify
from rest_framework import serializers

from .models import AuditLog, Organization, User


class OrganizationSerializer(serializers.ModelSerializer):
    class Meta:
        model = Organization
        fields = [
            'id', 'name', 'slug', 'siret', 'tva_number', 'address', 'postal_code', 'city',
            'country', 'email', 'phone', 'iban', 'logo', 'is_active', 'created_at', 'updated_at'
        ]
        read_only_fields = ['slug', 'is_active', 'created_at', 'updated_at']


class UserSerializer(serializers.ModelSerializer):
    organization_name = serializers.CharField(source='organization.name', read_only=True)

    class Meta:
        model = User
        fields = [
            'id', 'username', 'email', 'first_name', 'last_name', 'phone', 'role',
            'organization', 'organization_name', 'avatar', 'is_active', 'created_at', 'updated_at'
        ]
        read_only_fields = ['role', 'organization', 'is_active', 'created_at', 'updated_at']


class UserCreateSerializer(serializers.ModelSerializer):
    """Registration: creates the user and, when ``organization_name`` is given, its organization"""
    password = serializers.CharField(write_only=True, validators=[validate_password])
    password_confirm = serializers.CharField(write_only=True)
    organization_name = serializers.CharField(write_only=True, required=False, allow_blank=True)

    class Meta:
        model = User
        fields = ['username', 'email', 'password', 'password_confirm', 'first_name', 'last_name', 'phone', 'organization_name']

    def validate(self, attrs):
        if attrs['password'] != attrs['password_confirm']:
            raise serializers.ValidationError({"password": "Passwords don't match"})
        return attrs

    @transaction.atomic
    def create(self, validated_data):
        validated_data.pop('password_confirm')
        password = validated_data.pop('password')
        organization_name = validated_data.pop('organization_name', '').strip()

        organization = None
        role = 'learner'
        if organization_name:
            base_slug = slugify(organization_name) or 'organization'
            slug = base_slug
            counter = 1
            while Organization.objects.filter(slug=slug).exists():
                counter += 1
                slug = f"{base_slug}-{counter}"
            organization = Organization.objects.create(name=organization_name, slug=slug)
            role = 'admin'

        user = User.objects.create(**validated_data, organization=organization, role=role, is_active=True)
        user.set_password(password)
        user.save()
        return user


class AuditLogSerializer(serializers.ModelSerializer):
    username = serializers.CharField(source='user.username', read_only=True)

    class Meta:
        model = AuditLog
        fields = [
            'id', 'user', 'username', 'action', 'model_name', 'object_id', 'object_name',
            'object_reference', 'changes', 'ip_address', 'created_at'
        ]
