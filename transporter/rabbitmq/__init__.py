"""RabbitMQ adaptor: consume JSON from queues and publish JSON to exchanges."""