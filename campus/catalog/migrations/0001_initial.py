# Generated manually
import django.db.models.deletion
from decimal import Decimal
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('core', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Item',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('reference', models.CharField(max_length=50)),
                ('designation', models.CharField(max_length=255)),
                ('description', models.TextField(blank=True)),
                ('category', models.CharField(blank=True, max_length=100)),
                ('unit', models.CharField(choices=[('unit', 'Unit'), ('hour', 'Hour'), ('day', 'Day'), ('session', 'Session'), ('package', 'Package')], default='unit', max_length=20)),
                ('price_ht', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=12)),
                ('tva_rate', models.DecimalField(decimal_places=2, default=Decimal('20.00'), max_digits=5)),
                ('price_ttc', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=12)),
                ('is_active', models.BooleanField(default=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='items', to=settings.AUTH_USER_MODEL)),
                ('organization', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='items', to='core.organization')),
            ],
            options={
                'db_table': 'items',
                'ordering': ['designation'],
                'constraints': [
                    models.UniqueConstraint(fields=('organization', 'reference'), name='uniq_item_org_reference'),
                ],
            },
        ),
    ]
