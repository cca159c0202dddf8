from decimal import Decimal

import django.core.validators
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('doctors', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='Service',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('name', models.CharField(max_length=255)),
                ('description', models.TextField(blank=True)),
                ('price', models.DecimalField(decimal_places=2, max_digits=12, validators=[django.core.validators.MinValueValidator(Decimal('0'))])),
                ('number_of_sessions', models.PositiveIntegerField(validators=[django.core.validators.MinValueValidator(1)])),
                ('article_content', models.TextField(blank=True)),
                ('image', models.CharField(blank=True, max_length=500)),
                ('doctors', models.ManyToManyField(blank=True, related_name='services', to='doctors.doctor')),
            ],
            options={
                'ordering': ['name'],
            },
        ),
    ]
