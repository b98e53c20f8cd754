from peewee import Proxy

# Инициализируется в database.init.init_from_env или в тестовых фикстурах
db = Proxy()
