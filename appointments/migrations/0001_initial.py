import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('doctors', '0001_initial'),
        ('orders', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='DoctorAvailability',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('available_date', models.DateField()),
                ('start_time', models.TimeField()),
                ('end_time', models.TimeField()),
                ('status', models.CharField(choices=[('available', 'Available'), ('blocked', 'Blocked'), ('booked', 'Booked')], default='available', max_length=10)),
                ('is_active', models.BooleanField(default=True)),
                ('doctor', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='availabilities', to='doctors.doctor')),
            ],
            options={
                'verbose_name_plural': 'doctor availabilities',
                'ordering': ['available_date', 'start_time'],
                'constraints': [
                    models.UniqueConstraint(fields=('doctor', 'available_date', 'start_time', 'end_time'), name='unique_doctor_availability_slot'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Appointment',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('session_number', models.PositiveIntegerField()),
                ('scheduled_at', models.DateTimeField()),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('confirmed', 'Confirmed'), ('completed', 'Completed'), ('cancelled', 'Cancelled'), ('rescheduled', 'Rescheduled')], default='pending', max_length=15)),
                ('notes', models.TextField(blank=True)),
                ('completion_notes', models.TextField(blank=True)),
                ('is_reminder_sent', models.BooleanField(default=False)),
                ('availability', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='appointments', to='appointments.doctoravailability')),
                ('order', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='appointments', to='orders.order')),
            ],
            options={
                'ordering': ['order', 'session_number'],
                'indexes': [
                    models.Index(fields=['scheduled_at'], name='appointment_schedul_8f2b1e_idx'),
                    models.Index(fields=['status'], name='appointment_status_4c7a90_idx'),
                ],
                'constraints': [
                    models.UniqueConstraint(fields=('order', 'session_number'), name='unique_order_session_number'),
                ],
            },
        ),
    ]
