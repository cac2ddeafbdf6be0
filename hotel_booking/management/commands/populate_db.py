from django.core.management.base import BaseCommand
from hotel_booking.models import City, Room


class Command(BaseCommand):
    help = 'Populate database with sample cities and hotels'

    def handle(self, *args, **options):
        cities_data = [
            {'key': 'addis_ababa', 'name': 'Addis Ababa'},
            {'key': 'bahir_dar', 'name': 'Bahir Dar'},
            {'key': 'gondar', 'name': 'Gondar'},
        ]

        rooms_data = [
            {
                'name': 'Skylight Hotel',
                'city': 'addis_ababa',
                'price_per_night': 4500,
                'rating': 5,
                'description': 'Airport hotel with a rooftop pool',
            },
            {
                'name': 'Jupiter International Hotel',
                'city': 'addis_ababa',
                'price_per_night': 2500,
                'rating': 4,
                'description': 'Business hotel near Bole',
            },
            {
                'name': 'Kuriftu Resort',
                'city': 'bahir_dar',
                'price_per_night': 3800,
                'rating': 5,
                'description': 'Lakeside resort and spa on Lake Tana',
            },
            {
                'name': 'Goha Hotel',
                'city': 'gondar',
                'price_per_night': 1800,
                'rating': 3,
                'description': 'Hilltop hotel overlooking the castles',
            },
        ]

        cities = {}
        for city_data in cities_data:
            city, created = City.objects.get_or_create(key=city_data['key'], defaults=city_data)
            cities[city.key] = city
            if created:
                self.stdout.write(f'Created city: {city.name}')

        for room_data in rooms_data:
            defaults = dict(room_data, city=cities[room_data['city']])
            room, created = Room.objects.get_or_create(
                name=room_data['name'],
                defaults=defaults
            )

            if created:
                self.stdout.write(f'Created hotel: {room.name} - {room.price_per_night}/night')
            else:
                self.stdout.write(f'Hotel {room.name} already exists')

        self.stdout.write(
            self.style.SUCCESS('Successfully populated database with sample data')
        )
