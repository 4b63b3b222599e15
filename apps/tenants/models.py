"""
Tenants App - Multi-tenancy (companies)

Every business row in the system belongs to exactly one Tenant. Cross-tenant
references are never allowed; services receive the tenant through the
RequestContext and scope every query by it.
"""
from django.db import models
from django.utils.text import slugify


class Tenant(models.Model):
    """Company/Organization entity for multi-tenancy"""
    name = models.CharField(max_length=100, verbose_name="Razón Social")
    cuit = models.CharField(max_length=13, unique=True, blank=True, null=True, verbose_name="CUIT", help_text="XX-XXXXXXXX-X")
    slug = models.SlugField(max_length=100, unique=True, blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = "Empresa"
        verbose_name_plural = "Empresas"

    def save(self, *args, **kwargs):
        if not self.slug:
            base = slugify(self.name) or 'empresa'
            slug = base
            n = 1
            while Tenant.objects.filter(slug=slug).exclude(pk=self.pk).exists():
                n += 1
                slug = f"{base}-{n}"
            self.slug = slug
        super().save(*args, **kwargs)

    def __str__(self):
        return self.name

    @property
    def users_count(self):
        """Count active members for this tenant"""
        return self.memberships.filter(is_active=True).count()


class TenantMixin(models.Model):
    """Abstract base model for tenant-scoped entities"""
    tenant = models.ForeignKey(Tenant, on_delete=models.CASCADE, verbose_name="Empresa")

    class Meta:
        abstract = True
