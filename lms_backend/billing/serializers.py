from rest_framework import serializers

from .models import Package, PackageFeature, PackageQuota, Subscription
from .quotas import quota_summary


class PackageFeatureSerializer(serializers.ModelSerializer):
    value = serializers.SerializerMethodField()

    class Meta:
        model = PackageFeature
        fields = ['feature_key', 'name', 'description', 'feature_type', 'value']

    def get_value(self, obj):
        return obj.typed_value


class PackageQuotaSerializer(serializers.ModelSerializer):
    class Meta:
        model = PackageQuota
        fields = ['quota_name', 'limit', 'unit', 'is_unlimited']


class PackageSerializer(serializers.ModelSerializer):
    features = serializers.SerializerMethodField()
    quotas = PackageQuotaSerializer(many=True, read_only=True)

    class Meta:
        model = Package
        fields = [
            'id', 'name', 'slug', 'description', 'price', 'currency',
            'billing_cycle', 'trial_days', 'is_featured', 'features', 'quotas',
        ]

    def get_features(self, obj):
        return PackageFeatureSerializer(obj.features.filter(is_enabled=True), many=True).data


class SubscriptionSerializer(serializers.ModelSerializer):
    package = PackageSerializer(read_only=True)
    is_active = serializers.BooleanField(read_only=True)
    on_trial = serializers.BooleanField(read_only=True)
    quotas = serializers.SerializerMethodField()

    class Meta:
        model = Subscription
        fields = [
            'id', 'package', 'status', 'is_active', 'on_trial', 'amount', 'currency',
            'trial_ends_at', 'current_period_start', 'current_period_end',
            'cancelled_at', 'expires_at', 'quotas',
        ]

    def get_quotas(self, obj):
        return quota_summary(obj)
